import logging

from reservation_engine.context import EngineContext
from reservation_engine.domain.rendering import format_performance_datetime, render_template
from reservation_engine.infrastructure.db.models import Performance, Reservation, Schedule

logger = logging.getLogger(__name__)

CONFIRMATION_REQUEST_SUBJECT = "Please confirm your reservation"
CONFIRMED_SUBJECT = "Your reservation is confirmed"
REMINDER_SUBJECT = "Your upcoming performance"
SURVEY_SUBJECT = "Thank you for coming"


class ReservationMailer:
    """
    Renders reservation emails from stored templates and hands
    them to the email sender. Templates are fetched once per
    mailer, i.e. once per invocation.
    """

    def __init__(self, context: EngineContext):
        self.settings = context.settings
        self.email_sender = context.email_sender
        self.template_source = context.template_source
        self._templates: dict[str, str] = {}

    def _template(self, name: str) -> str:
        if name not in self._templates:
            self._templates[name] = self.template_source.get_template(name)
        return self._templates[name]

    def event_page_url(self, performance_id: str) -> str:
        return f"{self.settings.frontend_url}/events/{performance_id}"

    def _base_fields(
        self,
        reservation: Reservation,
        performance: Performance,
        schedule: Schedule,
    ) -> dict:
        return {
            "name": reservation.name,
            "performanceTitle": performance.title,
            "performanceDateTime": format_performance_datetime(schedule.date, schedule.time),
            "reservedSeats": reservation.reserved_seats,
            "eventPageUrl": self.event_page_url(performance.id),
        }

    def _send(self, template_name: str, subject: str, to: str, fields: dict) -> None:
        body = render_template(self._template(template_name), fields)
        self.email_sender.send(to, subject, body)

    def send_confirmation_request(
        self,
        reservation: Reservation,
        performance: Performance,
        schedule: Schedule,
        confirmation_link: str,
    ) -> None:
        fields = self._base_fields(reservation, performance, schedule)
        fields["confirmationLink"] = confirmation_link
        self._send(
            "reservation-confirmation",
            CONFIRMATION_REQUEST_SUBJECT,
            reservation.email,
            fields,
        )

    def send_confirmed(
        self,
        reservation: Reservation,
        performance: Performance,
        schedule: Schedule,
        cancel_url: str,
    ) -> None:
        fields = self._base_fields(reservation, performance, schedule)
        fields["cancelUrl"] = cancel_url
        self._send("reservation-confirmed", CONFIRMED_SUBJECT, reservation.email, fields)

    def send_reminder(
        self,
        reservation: Reservation,
        performance: Performance,
        schedule: Schedule,
    ) -> None:
        fields = self._base_fields(reservation, performance, schedule)
        fields["entryUrl"] = schedule.entry_url
        self._send("reminder-email", REMINDER_SUBJECT, reservation.email, fields)

    def send_survey(
        self,
        reservation: Reservation,
        performance: Performance,
        schedule: Schedule,
    ) -> None:
        fields = self._base_fields(reservation, performance, schedule)
        fields["surveyUrl"] = performance.survey_url
        self._send("survey-email", SURVEY_SUBJECT, reservation.email, fields)
