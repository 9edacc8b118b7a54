import uuid
from django.db import models
from django.utils.translation import gettext_lazy as _


class TimestampedModel(models.Model):
    """Abstract model with created and updated timestamps"""
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_('Created at')
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_('Updated at')
    )

    class Meta:
        abstract = True

    def save_changes(self, *fields):
        """
        Save only the given fields, always bumping updated_at

        Used by the state transition methods (mark_as_*, pause, record_run)
        so concurrent writers of other columns are not overwritten.
        """
        self.save(update_fields=[*fields, 'updated_at'])


class BaseModel(TimestampedModel):
    """Abstract base of settlement records: UUID primary key and timestamps"""
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        verbose_name=_('ID')
    )

    class Meta:
        abstract = True
