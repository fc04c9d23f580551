from .graphql import router as graphql_router

__all__ = ["graphql_router"]
