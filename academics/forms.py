from django import forms

from .models import Class, Semester


DAY_CHOICES = (
    ('M', 'Mon'),
    ('T', 'Tue'),
    ('W', 'Wed'),
    ('R', 'Thu'),
    ('F', 'Fri'),
    ('S', 'Sat'),
    ('U', 'Sun'),
)


def _apply_bootstrap_controls(form):
    """Add Bootstrap classes to widgets for better mobile usability."""
    for name, field in form.fields.items():
        widget = field.widget
        if isinstance(widget, forms.HiddenInput):
            continue
        if isinstance(widget, (forms.Select, forms.SelectMultiple)) and not isinstance(widget, forms.CheckboxSelectMultiple):
            widget.attrs["class"] = (widget.attrs.get("class", "") + " form-select").strip()
        elif isinstance(widget, (forms.CheckboxInput, forms.CheckboxSelectMultiple)):
            widget.attrs["class"] = (widget.attrs.get("class", "") + " form-check-input").strip()
        else:
            widget.attrs["class"] = (widget.attrs.get("class", "") + " form-control").strip()


class ClassAdminForm(forms.ModelForm):
    """Edits the schedule JSON through day checkboxes and two time inputs."""
    days = forms.MultipleChoiceField(choices=DAY_CHOICES, widget=forms.CheckboxSelectMultiple)
    start_time = forms.TimeField(widget=forms.TimeInput(attrs={'type': 'time'}, format='%H:%M'))
    end_time = forms.TimeField(widget=forms.TimeInput(attrs={'type': 'time'}, format='%H:%M'))

    class Meta:
        model = Class
        exclude = ['schedule']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        schedule = self.instance.schedule if self.instance and self.instance.schedule else {}
        self.fields['days'].initial = schedule.get('days', ['M', 'W', 'F'])
        self.fields['start_time'].initial = schedule.get('startTime', '08:00')
        self.fields['end_time'].initial = schedule.get('endTime', '09:30')

    def clean(self):
        cleaned = super().clean()
        days = cleaned.get('days')
        start, end = cleaned.get('start_time'), cleaned.get('end_time')
        if start and end and end <= start:
            self.add_error('end_time', 'End time must be after start time.')
        elif days and start and end:
            # Model validation runs after this and checks the schedule on the instance
            self.instance.schedule = {
                'days': list(days),
                'startTime': start.strftime('%H:%M'),
                'endTime': end.strftime('%H:%M'),
            }
        return cleaned


class SemesterForm(forms.ModelForm):
    class Meta:
        model = Semester
        fields = [
            'name', 'start_date', 'end_date',
            'midterm_start_date', 'midterm_end_date',
            'final_start_date', 'final_end_date', 'school_system',
        ]
        widgets = {
            name: forms.DateInput(attrs={'type': 'date'})
            for name in (
                'start_date', 'end_date', 'midterm_start_date', 'midterm_end_date',
                'final_start_date', 'final_end_date',
            )
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _apply_bootstrap_controls(self)


class ScanForm(forms.Form):
    code = forms.CharField(
        max_length=64, label='QR code or student ID',
        widget=forms.TextInput(attrs={'autofocus': True, 'autocomplete': 'off', 'placeholder': 'Scan QR code or enter student ID'}),
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        _apply_bootstrap_controls(self)


class HolidayImportForm(forms.Form):
    semester = forms.ModelChoiceField(queryset=Semester.objects.none())
    file = forms.FileField(help_text='CSV with a header row: date,kind,name,notes')

    def __init__(self, *args, semesters=None, **kwargs):
        super().__init__(*args, **kwargs)
        if semesters is not None:
            self.fields['semester'].queryset = semesters
        _apply_bootstrap_controls(self)
