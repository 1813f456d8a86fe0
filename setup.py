from setuptools import setup, find_packages

setup(
    name='esm2amd',
    version='0.1.0',
    py_modules=['esm2amd', 'builder'],
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.8',
    install_requires=[
        'lark',
        'pydantic>=2.0',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'esm2amd = esm2amd:main',
        ],
    },
)
