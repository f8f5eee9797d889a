"""
restcore registry of resource definitions

The registry answers questions about resource collections: whether a
name is acceptable, which properties are required or label-like and
which nestings of sub-collections are allowed. It operates in one of
two modes, depending on the configured resource definitions:

  - In *open mode* (no resources declared), any well-formed plural
    resource name is accepted, any resource may be nested below any
    other resource and the default label fields of the general config
    are used for every resource.
  - In *strict mode* (at least one resource declared), only declared
    resources are accepted and sub-collections must list their
    parent resource in their ``parents`` field.
"""

from typing import Dict, Iterable, List, Optional

from .schemas import config


class ResourceRegistry:
    """
    Lookup helper for the configured resource definitions
    """

    def __init__(
            self,
            definitions: Iterable[config.ResourceDefinition] = (),
            general: Optional[config.GeneralConfig] = None
    ):
        self._definitions: Dict[str, config.ResourceDefinition] = {d.name: d for d in definitions}
        self._general = general or config.GeneralConfig()

    @classmethod
    def from_config(cls, conf: config.CoreConfig) -> "ResourceRegistry":
        return cls(conf.resources, conf.general)

    @property
    def strict(self) -> bool:
        return len(self._definitions) > 0

    @property
    def names(self) -> List[str]:
        return list(self._definitions.keys())

    def get(self, name: str) -> Optional[config.ResourceDefinition]:
        return self._definitions.get(name)

    def is_well_formed(self, name: str) -> bool:
        return config.RESOURCE_NAME_PATTERN.match(name) is not None

    def is_plural(self, name: str) -> bool:
        if not self._general.enforce_plural_names or name in self._definitions:
            return True
        return name.endswith("s") or name in self._general.irregular_plurals

    def is_known(self, name: str) -> bool:
        return not self.strict or name in self._definitions

    def may_nest(self, child: str, parent: str) -> bool:
        if not self.strict:
            return True
        definition = self._definitions.get(child)
        return definition is not None and parent in definition.parents

    def labels_of(self, name: str) -> List[str]:
        definition = self._definitions.get(name)
        if definition is None:
            return list(self._general.default_label_fields)
        return list(definition.labels)

    def required_of(self, name: str) -> List[str]:
        definition = self._definitions.get(name)
        return [] if definition is None else list(definition.required)

    def default_subresource_of(self, name: str) -> Optional[str]:
        definition = self._definitions.get(name)
        return None if definition is None else definition.default_subresource
