"""Reserved names, identifier patterns and protocol constants.

The rules defined here are part of the public contract between request
files, expected-result files and the runtime: the reserved prior-results
binding, the identifier syntax accepted in `${...}` expressions and the
set of supported HTTP methods.
"""

from re import ASCII
from re import compile as regexp
from typing import Literal

#: Reserved substitution binding for results recorded earlier in the
#: current suite run. Templates reference it as `${@...}`.
RESULTS = '__ply_results'

#: Header excluded from substitution and from recorded results.
AUTHORIZATION = 'Authorization'

#: Supported HTTP methods. Any other resolved method fails the request
#: before network I/O.
METHODS = frozenset({
    'GET',
    'HEAD',
    'POST',
    'PUT',
    'DELETE',
    'CONNECT',
    'OPTIONS',
    'TRACE',
    'PATCH',
})

#: Accepted URL schemes of resolved request URLs.
URL_SCHEMES = ('http://', 'https://')

#: Base pattern for identifiers inside `${...}` expressions.
_NAME_PATTERN = r'[A-Za-z_$][\w$]*'

#: Compiled pattern for expression identifiers.
#: Used both for scanning (`match` at a position) and validation (`fullmatch`).
IDENTIFIER_PATTERN = regexp(_NAME_PATTERN, flags=ASCII)

#: Suffixes of request files collected by the loader and the pytest plugin.
REQUEST_SUFFIXES = ('.ply.yaml', '.ply.yml')

type TestType = Literal['request', 'case', 'workflow']
