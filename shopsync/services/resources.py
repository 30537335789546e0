"""
Static registry of proxied Shopify resources.

Maps the ``resource`` segment of ``/api/v1/{resource}`` to the scope it
needs, the REST path it lives at and the envelope Shopify wraps request
bodies in. Unknown names fall back to ``read_<resource>``/``write_<resource>``
and ``/<resource>.json``.
"""
import re
from dataclasses import dataclass
from typing import Dict, Optional, Union

from shopsync.core.scopes import read_scope, write_scope

RESOURCE_NAME = re.compile(r"^[a-z][a-z_]*$")


@dataclass(frozen=True)
class ResourceSpec:
    name: str
    scope_resource: str
    path: str
    envelope: Optional[str] = None
    activity_type: Optional[str] = None
    read_only: bool = False

    @property
    def read_scope(self) -> str:
        return read_scope(self.scope_resource)

    @property
    def write_scope(self) -> str:
        return write_scope(self.scope_resource)

    def required_scope(self, method: str) -> str:
        return self.read_scope if method.upper() == "GET" else self.write_scope

    def collection_path(self) -> str:
        return f"/{self.path}.json"

    def item_path(self, resource_id: Union[str, int]) -> str:
        return f"/{self.path}/{resource_id}.json"

    def wrap(self, payload):
        """Put a request body inside Shopify's envelope unless the caller already did."""
        if self.envelope is None or not isinstance(payload, dict) or self.envelope in payload:
            return payload
        return {self.envelope: payload}

    @property
    def log_type(self) -> str:
        return self.activity_type or self.name


RESOURCES: Dict[str, ResourceSpec] = {
    spec.name: spec
    for spec in (
        ResourceSpec("orders", "orders", "orders", envelope="order", activity_type="order"),
        ResourceSpec("customers", "customers", "customers", envelope="customer", activity_type="customer"),
        ResourceSpec("products", "products", "products", envelope="product", activity_type="product"),
        ResourceSpec("inventory", "inventory", "inventory_levels", activity_type="inventory"),
        ResourceSpec("inventory_levels", "inventory", "inventory_levels", activity_type="inventory"),
        ResourceSpec("locations", "locations", "locations", envelope="location", activity_type="location"),
        ResourceSpec("fulfillments", "fulfillments", "fulfillments", envelope="fulfillment", activity_type="fulfillment"),
        ResourceSpec("draft_orders", "draft_orders", "draft_orders", envelope="draft_order", read_only=True),
        ResourceSpec("price_rules", "price_rules", "price_rules", envelope="price_rule", read_only=True),
        ResourceSpec("discounts", "discounts", "discounts", read_only=True),
        ResourceSpec("returns", "returns", "returns", read_only=True),
    )
}


def resolve_resource(name: str) -> Optional[ResourceSpec]:
    """
    Registry entry for ``name``, or the generic fallback.
    Returns None for names that cannot be a Shopify resource.
    """
    spec = RESOURCES.get(name)
    if spec is not None:
        return spec
    if not RESOURCE_NAME.match(name):
        return None
    return ResourceSpec(name=name, scope_resource=name, path=name)
