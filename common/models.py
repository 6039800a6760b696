from django.db import models
from django.utils.translation import gettext_lazy as _

from model_utils.fields import AutoCreatedField, AutoLastModifiedField


class IndexedTimeStampedModel(models.Model):
    created = AutoCreatedField(_("created"), db_index=True)
    modified = AutoLastModifiedField(_("modified"), db_index=True)

    class Meta:
        abstract = True


class MetaJsonFieldModel(models.Model):
    meta = models.JSONField(_("meta"), default=dict, blank=True)

    class Meta:
        abstract = True


class BaseModel(IndexedTimeStampedModel, MetaJsonFieldModel):
    class Meta(IndexedTimeStampedModel.Meta, MetaJsonFieldModel.Meta):
        abstract = True


class TimeRangeQuerySet(models.QuerySet):
    def overlapping(self, start, end):
        """
        Rows whose half-open range [start_time, end_time) intersects [start, end).
        Ranges that only touch at an endpoint do not overlap.
        """
        return self.filter(start_time__lt=end, end_time__gt=start)


class TimeRangeModel(BaseModel):
    start_time = models.DateTimeField(_("start time"), db_index=True)
    end_time = models.DateTimeField(_("end time"), db_index=True)

    objects = TimeRangeQuerySet.as_manager()

    class Meta(BaseModel.Meta):
        abstract = True

    @property
    def duration(self):
        return self.end_time - self.start_time
