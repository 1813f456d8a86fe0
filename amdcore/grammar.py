"""
Grammar for the binding clause of ES import statements.

Only the part between ``import`` and ``from`` is parsed; locating the
statements themselves is done with regular expressions.
"""

import_clause_grammar = r"""
    start: default_binding ("," (namespace_binding | named_bindings))?
         | namespace_binding
         | named_bindings

    default_binding: NAME
    namespace_binding: "*" "as" NAME
    named_bindings: "{" (import_specifier ("," import_specifier)* ","?)? "}"
    import_specifier: import_name ("as" NAME)?
    import_name: NAME | STRING

    NAME: /[A-Za-z_$][\w$]*/
    STRING: /"[^"]*"/ | /'[^']*'/

    BLOCK_COMMENT: /\/\*[\s\S]*?\*\//
    LINE_COMMENT: /\/\/[^\n]*/

    %import common.WS
    %ignore WS
    %ignore BLOCK_COMMENT
    %ignore LINE_COMMENT
"""
