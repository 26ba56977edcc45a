"""
Soft delete infrastructure shared by orders, order items and shifts.

Soft-deleted rows stay in the table for audit but are hidden from the default
manager. ``all_objects`` sees everything, which is what number sequencing and
history lookups need.
"""

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet with soft delete helpers.
    """

    def alive(self):
        """Return only records that are not soft-deleted."""
        return self.filter(is_deleted=False)

    def deleted(self):
        """Return only soft-deleted records."""
        return self.filter(is_deleted=True)

    def soft_delete(self, deleted_by_id=None):
        """
        Soft delete every record in this queryset.

        Args:
            deleted_by_id: id of the actor who performed the delete
        """
        return self.update(
            is_deleted=True,
            deleted_at=timezone.now(),
            deleted_by_id=deleted_by_id,
        )


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """
    Manager that hides soft-deleted records by default.
    """

    def get_queryset(self):
        return super().get_queryset().alive()


class SoftDeleteMixin(models.Model):
    """
    Abstract base class providing soft delete fields and behaviour.

    Models inheriting from this mixin get:
    - is_deleted flag, deleted_at timestamp and deleted_by_id actor id
    - soft_delete() / restore() methods
    - ``objects`` hiding deleted rows, ``all_objects`` showing everything
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Soft-deleted records are hidden everywhere but kept for audit.",
    )
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by_id = models.UUIDField(null=True, blank=True)

    objects = SoftDeleteManager()
    all_objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True

    def mark_deleted(self, deleted_by_id=None):
        """Set the soft delete fields without saving."""
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.deleted_by_id = deleted_by_id

    def soft_delete(self, deleted_by_id=None):
        """
        Soft delete this record.

        Args:
            deleted_by_id: id of the actor who performed the delete
        """
        self.mark_deleted(deleted_by_id)
        self.save(update_fields=["is_deleted", "deleted_at", "deleted_by_id"])

    def restore(self):
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by_id = None
        self.save(update_fields=["is_deleted", "deleted_at", "deleted_by_id"])

    def delete(self, using=None, keep_parents=False):
        """
        Soft delete instead of removing the row.

        Use force_delete() for a real delete.
        """
        self.soft_delete()

    def force_delete(self, using=None, keep_parents=False):
        return super().delete(using=using, keep_parents=keep_parents)
