from common.exceptions import ResourceNotFound


class EntityLookupMixin:
    """Raise a `{message}`-style 404 naming the entity and id instead of DRF's generic one."""

    entity_label = "Record"

    def get_object(self):
        lookup_url_kwarg = self.lookup_url_kwarg or self.lookup_field
        pk = self.kwargs.get(lookup_url_kwarg)
        queryset = self.filter_queryset(self.get_queryset())
        try:
            instance = queryset.filter(**{self.lookup_field: pk}).first()
        except (TypeError, ValueError):
            instance = None
        if instance is None:
            raise ResourceNotFound(f"{self.entity_label} with ID {pk} not found")

        self.check_object_permissions(self.request, instance)
        return instance
