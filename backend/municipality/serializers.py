"""
Municipality app serializers.

Response-only representations of categories, offices and companies.
"""

from __future__ import annotations

from rest_framework import serializers

from .models import Company, ProblemCategory, TechnicalOffice


class TechnicalOfficeSerializer(serializers.ModelSerializer):
    class Meta:
        model = TechnicalOffice
        fields = ["id", "name"]
        read_only_fields = fields


class ProblemCategorySerializer(serializers.ModelSerializer):
    """A category together with the office its reports are routed to."""

    technical_office = TechnicalOfficeSerializer(read_only=True, allow_null=True)

    class Meta:
        model = ProblemCategory
        fields = ["id", "name", "description", "technical_office"]
        read_only_fields = fields


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ["id", "name", "email"]
        read_only_fields = fields
