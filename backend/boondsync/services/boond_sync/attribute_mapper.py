"""
Attribute Mapper for BoondManager Records.

Prepares production attributes for writing into sandbox:
- Read-only field removal
- Tracked-field comparison (update vs skip)
- Relationship remapping through the run's id map
- Display cleaning of snapshots
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from boondsync.integrations.boondmanager.models import EntityRecord
from boondsync.integrations.boondmanager.schema import (
    ResourceType,
    get_read_only_fields,
    get_schema_config,
    get_tracked_fields,
    resource_type_from_api,
)
from boondsync.utils.normalization import (
    DEFAULT_COUNTRY_CODE,
    format_company_name,
    format_display_name,
    normalize_email,
    normalize_phone,
)

# (resource type, production id) -> sandbox id
IdMap = Dict[Tuple[ResourceType, int], int]


def _comparable(value: Any) -> Any:
    """Value used for equality: blank strings and None are the same, strings are trimmed."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (list, dict)) and not value:
        return None
    return value


class AttributeMapper:
    """
    Maps a production record's attributes onto what sandbox accepts.

    One mapper per resource type.
    """

    def __init__(self, resource_type: ResourceType, xref_field: Optional[str] = None):
        """
        Initialize attribute mapper.

        Args:
            resource_type: Type of the records handled
            xref_field: Sandbox attribute storing the production id, if any
        """
        self.resource_type = ResourceType(resource_type)
        self.xref_field = xref_field
        self.read_only = set(get_read_only_fields(self.resource_type))
        self.tracked = list(get_tracked_fields(self.resource_type))

    def writable_attributes(self, record: EntityRecord) -> Dict[str, Any]:
        """
        Attributes to send when creating the record in sandbox.

        Drops read-only fields and None values, and stamps the
        cross-reference attribute when configured.
        """
        attributes: Dict[str, Any] = {}
        for key, value in record.attributes.items():
            if key in self.read_only or value is None:
                continue
            attributes[key] = value

        if self.xref_field:
            attributes[self.xref_field] = str(record.id)
        return attributes

    def diff(self, production: EntityRecord, sandbox: EntityRecord) -> Dict[str, Any]:
        """
        Tracked fields whose production value differs from sandbox.

        Fields absent from production are not compared (nothing to copy).
        The cross-reference attribute is included when sandbox lacks it.

        Returns:
            Attributes to PUT (empty dict means skip)
        """
        changes: Dict[str, Any] = {}
        for field in self.tracked:
            if field not in production.attributes:
                continue
            prod_value = production.attributes.get(field)
            if _comparable(prod_value) != _comparable(sandbox.attributes.get(field)):
                changes[field] = prod_value

        if self.xref_field:
            current = sandbox.attributes.get(self.xref_field)
            if current is None or str(current).strip() != str(production.id):
                changes[self.xref_field] = str(production.id)

        return changes

    def remap_relationships(self, relationships: Mapping[str, Any], id_map: IdMap) -> Dict[str, Any]:
        """
        Rewrite relationship ids from production to sandbox.

        Links to records not (yet) present in the id map are dropped.
        """
        remapped: Dict[str, Any] = {}
        for name, link in (relationships or {}).items():
            if not isinstance(link, dict) or "data" not in link:
                continue
            data = link["data"]

            if isinstance(data, list):
                items = [self._remap_item(item, id_map) for item in data]
                items = [item for item in items if item is not None]
                if items:
                    remapped[name] = {"data": items}
            elif isinstance(data, dict):
                item = self._remap_item(data, id_map)
                if item is not None:
                    remapped[name] = {"data": item}

        return remapped

    def _remap_item(self, item: Any, id_map: IdMap) -> Optional[Dict[str, Any]]:
        if not isinstance(item, dict):
            return None
        target_type = resource_type_from_api(item.get("type"))
        if target_type is None:
            return None
        try:
            prod_id = int(item.get("id"))
        except (TypeError, ValueError):
            return None
        sandbox_id = id_map.get((target_type, prod_id))
        if sandbox_id is None:
            return None
        return {"id": sandbox_id, "type": target_type.value}


def clean_record(
    record: EntityRecord,
    resource_type: ResourceType,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> EntityRecord:
    """
    Return a copy of the record with display-normalized contact fields.

    Person names are title-cased, emails lower-cased, phones compacted to
    international form, company names get upper-case legal tokens.
    """
    config = get_schema_config(resource_type)
    attributes = dict(record.attributes)

    for field in config["name_fields"]:
        if field not in attributes:
            continue
        if config.get("name_is_company"):
            attributes[field] = format_company_name(attributes[field])
        elif config["email_fields"]:
            # person names only
            attributes[field] = format_display_name(attributes[field])

    for field in config["email_fields"]:
        if field in attributes:
            attributes[field] = normalize_email(attributes[field])

    for field in config["phone_fields"]:
        if field in attributes:
            attributes[field] = normalize_phone(attributes[field], default_country_code)

    return record.model_copy(update={"attributes": attributes})


def clean_records(
    records: List[EntityRecord],
    resource_type: ResourceType,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
) -> List[EntityRecord]:
    return [clean_record(record, resource_type, default_country_code) for record in records]
