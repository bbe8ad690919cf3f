import django_filters as df

from .models import InstrumentBox
from .workflows import STATUSES, STEP_ORDER


class InstrumentBoxFilter(df.FilterSet):
    box_code = df.CharFilter(field_name="box_code", lookup_expr="icontains")
    name = df.CharFilter(field_name="name", lookup_expr="icontains")
    service = df.NumberFilter(field_name="service_id")
    current_step = df.ChoiceFilter(choices=[(s, s) for s in STEP_ORDER])
    status = df.ChoiceFilter(choices=[(s, s) for s in STATUSES], method="filter_status")
    sterilization_type = df.CharFilter(field_name="sterilization_type")

    class Meta:
        model = InstrumentBox
        fields = ["box_code", "name", "service", "current_step", "status", "sterilization_type"]

    def filter_status(self, queryset, name, value):
        return queryset.with_status(value)
