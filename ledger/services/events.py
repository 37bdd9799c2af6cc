import logging

from ..exceptions import InvalidArgument, NotFound
from ..models import Event
from ..transactions import atomic_with_retry

logger = logging.getLogger(__name__)


class EventAlbum:
    """Photo references attached to donation events, kept in upload order."""

    def add_photos(self, event_id, references):
        references = [ref for ref in (references or []) if ref]
        if not references:
            raise InvalidArgument("At least one photo reference is required.")
        return self._add(event_id, references)

    def remove_photo(self, event_id, reference):
        if not reference:
            raise InvalidArgument("A photo reference is required.")
        return self._remove(event_id, reference)

    def _lock(self, event_id):
        try:
            event = Event.objects.select_for_update().filter(pk=event_id).first()
        except (ValueError, TypeError):
            event = None
        if event is None:
            raise NotFound(f"Event {event_id} not found.")
        return event

    @atomic_with_retry
    def _add(self, event_id, references):
        event = self._lock(event_id)
        event.photos = list(event.photos) + references
        event.save(update_fields=['photos'])
        logger.info("Added %d photo(s) to event %s", len(references), event.pk)
        return event

    @atomic_with_retry
    def _remove(self, event_id, reference):
        event = self._lock(event_id)
        if reference not in event.photos:
            raise NotFound("Photo not found for this event.")
        photos = list(event.photos)
        photos.remove(reference)
        event.photos = photos
        event.save(update_fields=['photos'])
        logger.info("Removed photo %s from event %s", reference, event.pk)
        return event
