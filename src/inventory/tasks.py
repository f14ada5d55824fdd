"""Celery tasks for the inventory app."""

from celery import shared_task


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    max_retries=3,
    retry_backoff=30,
    retry_backoff_max=300,
)
def delete_photo(self, file_id: str):
    """Remove an item photo from storage after its item let go of it."""
    from .services.photos import delete_item_photo

    return delete_item_photo(file_id)
