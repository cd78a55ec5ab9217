"""Hypermedia resources returned by the testbed REST API.

Every representation the API returns carries a "links" array of
{rel, href, type} entries. Resources are decoded once into typed
dataclasses with a link map; keys a class does not model are kept in
`extra` so that nothing the backend sent is lost.

Fields declared with metadata {"local": True} belong to the orchestrator,
not to the backend: they are never decoded, encoded, or overwritten by
refresh().

References:
    - DESIGN.md Section 4.1 (HypermediaResource)
"""

from __future__ import annotations

from dataclasses import MISSING, dataclass, field, fields
from typing import TYPE_CHECKING, Any, Generic, Iterator, Mapping, Optional, TypeVar, Union

from testbed_orchestrator.domain.errors import LinkNotFound

if TYPE_CHECKING:
    from testbed_orchestrator.ports.outbound import ResourceGateway

R = TypeVar("R", bound="HypermediaResource")

SELF = "self"
PARENT = "parent"


@dataclass(frozen=True)
class Link:
    """Named navigational pointer embedded in a representation."""
    rel: str
    href: str
    media_type: Optional[str] = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> Link:
        return cls(rel=data["rel"], href=data["href"], media_type=data.get("type"))

    def to_json(self) -> dict[str, Any]:
        data = {"rel": self.rel, "href": self.href}
        if self.media_type is not None:
            data["type"] = self.media_type
        return data


def local_field(**kwargs: Any) -> Any:
    """Declare a field owned by the orchestrator rather than the backend."""
    return field(metadata={"local": True}, **kwargs)


@dataclass
class HypermediaResource:
    """A decoded API representation with link-relation navigation."""
    uid: Any = None
    links: dict[str, Link] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    _RESERVED = ("links", "extra")

    @classmethod
    def _backend_fields(cls) -> dict[str, Any]:
        return {
            f.name: f
            for f in fields(cls)
            if f.name not in cls._RESERVED and not f.metadata.get("local")
        }

    @classmethod
    def from_json(cls: type[R], data: Mapping[str, Any]) -> R:
        """Decode a JSON object into this resource type.

        A null value for a collection field (links, lists, mappings) decodes
        to the field's empty default.
        """
        known = cls._backend_fields()
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key == "links":
                continue
            if key in known:
                if value is None and known[key].default_factory is not MISSING:
                    continue
                values[key] = cls._decode_field(key, value)
            else:
                extra[key] = value

        links: dict[str, Link] = {}
        for raw in data.get("links") or []:
            link = Link.from_json(raw)
            # First occurrence wins, matching a linear search through the array
            links.setdefault(link.rel, link)

        return cls(links=links, extra=extra, **values)

    @classmethod
    def _decode_field(cls, name: str, value: Any) -> Any:
        return value

    def to_json(self) -> dict[str, Any]:
        """Encode back into the API's JSON shape."""
        data: dict[str, Any] = dict(self.extra)
        for name in self._backend_fields():
            value = getattr(self, name)
            if value is not None:
                data[name] = _encode(value)
        if self.links:
            data["links"] = [link.to_json() for link in self.links.values()]
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Look a key up in the modelled fields, then in the extra keys."""
        if key in self._backend_fields():
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)

    def relation(self, name: str) -> str:
        """Return the href of the link with relation `name`.

        Raises:
            LinkNotFound: If the resource has no such link.
        """
        link = self.links.get(name)
        if link is None:
            raise LinkNotFound(name, self.describe())
        return link.href

    def self_link(self) -> str:
        return self.relation(SELF)

    def parent_link(self) -> str:
        return self.relation(PARENT)

    def refresh(self: R, gateway: ResourceGateway) -> R:
        """Re-fetch this resource through its self link, updating it in place.

        Caller-held references to this object observe the new state.

        Raises:
            LinkNotFound: If the resource has no self link.
        """
        fresh = gateway.get(self.self_link(), model=type(self))
        self._replace_state(fresh)
        return self

    def _replace_state(self, other: HypermediaResource) -> None:
        for f in fields(self):
            if f.metadata.get("local"):
                continue
            setattr(self, f.name, getattr(other, f.name))

    def describe(self) -> str:
        """Short human-readable identity for log lines."""
        if self.uid is not None:
            return str(self.uid)
        return type(self).__name__


def _encode(value: Any) -> Any:
    if isinstance(value, HypermediaResource):
        return value.to_json()
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


@dataclass
class ResourceCollection(HypermediaResource, Generic[R]):
    """A collection representation ({"items": [...], "total": n, ...})."""
    items: list[R] = field(default_factory=list)
    total: Optional[int] = None
    offset: Optional[int] = None
    item_model: type = local_field(default=HypermediaResource, repr=False, compare=False)

    @classmethod
    def from_json(
        cls,
        data: Union[Mapping[str, Any], list],
        item_model: type = HypermediaResource,
    ) -> ResourceCollection:
        """Decode a collection; a bare JSON array is treated as its items."""
        if isinstance(data, list):
            data = {"items": data}
        envelope = {k: v for k, v in data.items() if k != "items"}
        collection = super().from_json(envelope)
        collection.items = [item_model.from_json(item) for item in data.get("items") or []]
        collection.item_model = item_model
        return collection

    def refresh(self, gateway: ResourceGateway) -> ResourceCollection:
        fresh = gateway.get_collection(self.self_link(), self.item_model)
        self._replace_state(fresh)
        return self

    def identifiers(self) -> list[Any]:
        """Return the uid of every item, in order."""
        return [item.uid for item in self.items]

    def __iter__(self) -> Iterator[R]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
