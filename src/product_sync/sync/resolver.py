"""Map a product name onto the concrete value for the target custom field."""

from __future__ import annotations

from src.product_sync.sync.errors import NoMatchingOption
from src.product_sync.sync.labels import labels_match
from src.product_sync.sync.schemas import FieldDefinition, FieldMode, FieldValue


class FieldValueResolver:
    """Produces the FieldValue to write for a given field mode and product name.

    Callers must only invoke ``resolve`` with a non-empty product name.
    """

    def resolve(
        self,
        field_mode: FieldMode,
        field_definition: FieldDefinition | None,
        product_name: str,
    ) -> FieldValue:
        """Resolve ``product_name`` to a text value or an enumerated option.

        Args:
            field_mode: Whether the field takes free text or an option reference.
            field_definition: Required in enumerated mode; ignored for text.
            product_name: Display name of the parent product.

        Returns:
            FieldValue ready for the gateway write.

        Raises:
            NoMatchingOption: Enumerated mode and no option label matches.
        """
        if field_mode == FieldMode.TEXT:
            return FieldValue(mode=FieldMode.TEXT, text=product_name)

        field_id = field_definition.id if field_definition is not None else ""
        options = field_definition.options if field_definition is not None else []

        # First match wins when labels collide after normalization
        for option in options:
            if labels_match(option.label, product_name):
                return FieldValue(mode=FieldMode.ENUMERATED, option_id=option.id)

        raise NoMatchingOption(field_id=field_id, product_name=product_name)
