"""
Starter pad.

Served when no pad is configured, and used as the template for new pads.
"""

STARTER_CODE = '''\
# Welcome to padrun!
# A pad is a Python module that exports a GraphQL schema.
# Send GraphQL requests to "/" to run queries against it.

# graphql-core builds a schema from the GraphQL schema language.
from graphql import build_schema

# Names starting with an underscore are private to the pad.
_type_defs = """
  type Query {
    hello: String
  }
"""


def _hello(root, info):
    return "Hello world!"


# Required: export the graphql-core schema object as "schema"
# (or a function "schemaFunction(secrets)" that returns one).
schema = build_schema(_type_defs)
schema.query_type.fields["hello"].resolve = _hello


# Optional: export a function to get context from the request. It accepts
# two parameters - headers (lowercased http headers) and secrets (secrets
# defined for the pad). It may return a value or an awaitable.
def context(headers, secrets):
    return {
        "headers": headers,
        "secrets": secrets,
    }


# Optional: export a root value to be passed during execution
# rootValue = {}

# Optional: export a root function that returns the root value, accepting
# headers and secrets. It may return an awaitable. rootFunction takes
# precedence over rootValue.
# def rootFunction(headers, secrets):
#     return {
#         "headers": headers,
#         "secrets": secrets,
#     }
'''
