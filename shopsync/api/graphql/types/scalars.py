from datetime import datetime
import strawberry

DateTime = strawberry.scalar(
    datetime,
    name="DateTime",
    description="ISO-8601 formatted datetime",
    serialize=lambda v: v.isoformat(),
    parse_value=lambda v: datetime.fromisoformat(v),
)
