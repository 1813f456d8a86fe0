import argparse
import os
import sys

from amdcore.config import load_build_config
from amdcore.console import debug_log, error, log, set_verbose, success, warn
from amdcore.errors import AmdBuildError
from amdcore.paths import find_root
from builder import FileProcessor

VERSION = "0.1.0"


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number <= 0:
        raise argparse.ArgumentTypeError("Invalid concurrency value. Must be a positive integer.")
    return number


def is_below(path, root):
    path = os.path.abspath(path)
    root = os.path.abspath(root)
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def cmd_build(args):
    cwd = os.getcwd()
    root = os.path.abspath(args.root) if args.root else find_root(cwd)
    if not root:
        error("Could not find Moodle root directory.")
        log("Please run this command from within a Moodle installation.")
        log("Looking for: version.php and config-dist.php, or lib/components.json")
        sys.exit(1)
    success(f"Moodle root detected: {root}")

    config = load_build_config(
        root,
        concurrency=args.concurrency,
        minify=False if args.no_minify else None,
        sourcemap=False if args.no_sourcemap else None,
    )
    if args.verbose:
        config.transform.add_source_comment = True
    debug_log(f"Build config: {config.model_dump()}")

    processor = FileProcessor(root, config)
    log("Scanning for AMD source files...")
    files = processor.find_source_files(cwd if is_below(cwd, root) else root)
    if not files:
        warn("No AMD source files found to process.")
        log(f"Expected to find files matching: {', '.join(config.patterns)}")
        return

    results = processor.run(files)
    stats = processor.get_stats()

    if stats.failed > 0:
        error(f"Build completed with {stats.failed} errors.")
        if args.verbose:
            log("Failed files:")
            for r in results:
                if not r.success:
                    error(f"  {r.file_path}: {r.error}")
        sys.exit(1)

    success("Build completed successfully!")


def cmd_inspect(args):
    file_path = os.path.abspath(args.filename)
    root = os.path.abspath(args.root) if args.root else find_root(os.path.dirname(file_path))
    if not root:
        error(f"Could not find Moodle root directory for {args.filename}")
        sys.exit(1)

    processor = FileProcessor(root, load_build_config(root))
    problems = processor.validate_file(file_path)
    if problems:
        for problem in problems:
            error(problem)
        sys.exit(1)

    result = processor.inspect_file(file_path)
    print(f"Module:       {result.module_id}")
    print(f"Format:       {result.shape.value}")
    print(f"Dependencies: {', '.join(result.dependencies) if result.dependencies else '(none)'}")
    print("-" * 60)
    print(result.code)


def main():
    parser = argparse.ArgumentParser(description="esm2amd - Moodle AMD module builder")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output (sent to stderr)")
    parser.add_argument("--version", action="version", version=f"esm2amd {VERSION}")
    parser.set_defaults(root=None, concurrency=None, no_minify=False, no_sourcemap=False)
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Build all AMD modules (default)")
    build.add_argument("--root", help="Moodle root directory (default: detected from the current directory)")
    build.add_argument("-c", "--concurrency", type=positive_int, help="Number of files built at the same time")
    build.add_argument("--no-minify", action="store_true", help="Skip minification")
    build.add_argument("--no-sourcemap", action="store_true", help="Skip source map generation")

    inspect = subparsers.add_parser("inspect", help="Show the transformed output of one file without writing it")
    inspect.add_argument("filename")
    inspect.add_argument("--root", help="Moodle root directory (default: detected from the file)")

    args = parser.parse_args()
    set_verbose(args.verbose)

    try:
        if args.command == "inspect":
            cmd_inspect(args)
        else:
            cmd_build(args)
    except AmdBuildError as e:
        error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
