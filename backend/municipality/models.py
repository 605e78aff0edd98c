"""
Municipality app models.

The collaborator tables the report workflow reads but never mutates:

* ``TechnicalOffice``  — a municipal department and the technicians
  staffing it.
* ``ProblemCategory``  — what a report is about; maps to the technical
  office responsible for it.
* ``Company``          — an external contractor, the categories it serves
  and its roster of maintainers.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class TechnicalOffice(TimeStampedModel):
    """A municipal technical office and the staff who work its reports."""

    name = models.CharField(
        max_length=150,
        unique=True,
        verbose_name="Office Name",
    )
    staff = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="technical_offices",
        verbose_name="Technical Staff",
    )

    class Meta:
        verbose_name = "Technical Office"
        verbose_name_plural = "Technical Offices"
        ordering = ["name"]

    def __str__(self):
        return self.name


class ProblemCategory(TimeStampedModel):
    """
    Category a citizen picks when filing a report (e.g. "Roads and
    Urban Furnishings").  Approving a report routes it to this category's
    technical office.
    """

    name = models.CharField(
        max_length=150,
        unique=True,
        verbose_name="Category Name",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )
    technical_office = models.ForeignKey(
        TechnicalOffice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="categories",
        verbose_name="Technical Office",
        help_text="Office that handles reports in this category.",
    )

    class Meta:
        verbose_name = "Problem Category"
        verbose_name_plural = "Problem Categories"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Company(TimeStampedModel):
    """
    External contractor a technician may delegate a report to.

    A company can only receive reports whose category it serves; the
    maintainer who actually works the report is drawn from ``maintainers``.
    """

    name = models.CharField(
        max_length=150,
        unique=True,
        verbose_name="Company Name",
    )
    email = models.EmailField(
        blank=True,
        default="",
        verbose_name="Contact Email",
    )
    categories = models.ManyToManyField(
        ProblemCategory,
        blank=True,
        related_name="companies",
        verbose_name="Served Categories",
    )
    maintainers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="companies",
        verbose_name="External Maintainers",
    )

    class Meta:
        verbose_name = "Company"
        verbose_name_plural = "Companies"
        ordering = ["name"]

    def __str__(self):
        return self.name
