import strawberry

from shopsync.api.graphql.queries import ActivityQuery, StoreQuery


# Root Query combines the feature queries
@strawberry.type
class Query(StoreQuery, ActivityQuery):
    pass


schema = strawberry.Schema(query=Query)
