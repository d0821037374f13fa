"""Kivy dashboard: sign in, log readings, stats, insights and exports."""

from __future__ import annotations

import logging
import traceback
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path

from dateutil import tz

from glucotracker import assistant
from glucotracker.entry import build_reading, emergency_advice
from glucotracker.errors import GlucoTrackerError
from glucotracker.export import ExcelLayout, write_csv, write_doctor_xlsx
from glucotracker.insights import generate_insights
from glucotracker.model import KNOWN_TYPES, Reading, RiskLevel
from glucotracker.repository import Session
from glucotracker.risk import classify, risk_color
from glucotracker.stats import (
    ChartView,
    QuickStats,
    chart_series,
    days_with_readings,
    filter_by_window,
    quick_stats,
    readings_on_day,
    recent_readings,
)
from glucotracker.storage import SQLiteStore

logger = logging.getLogger(__name__)

_LOCAL_TZ = tz.tzlocal()


def run_app(store: SQLiteStore) -> int:
    """Launch the Kivy app on ``store``."""
    from kivy.app import App
    from kivy.core.window import Window
    from kivy.resources import resource_find
    from kivy.uix.boxlayout import BoxLayout
    from kivy.uix.button import Button
    from kivy.uix.label import Label
    from kivy.uix.popup import Popup
    from kivy.uix.spinner import Spinner
    from kivy.uix.textinput import TextInput
    from kivy.uix.togglebutton import ToggleButton

    class GlucoTrackerApp(App):
        """Main Kivy app."""

        def __init__(self, **kwargs: object) -> None:
            super().__init__(**kwargs)
            self.store = store
            self.app_config = self.store.load_config()
            self.session: Session | None = None
            self.readings: list[Reading] = []
            self.status: Label | None = None
            self.stats_label: Label | None = None
            self.insights_box: BoxLayout | None = None
            self.recent_box: BoxLayout | None = None
            self.chart_preview: TextInput | None = None
            self._mono_font = resource_find("data/fonts/RobotoMono-Regular.ttf")

        def build(self) -> BoxLayout:
            Window.bind(on_key_down=self._on_key_down)
            self.title = "GlucoTracker"

            root = BoxLayout(orientation="vertical", spacing=8, padding=10)
            actions = BoxLayout(
                orientation="horizontal",
                spacing=8,
                size_hint_y=None,
                height=40,
            )
            buttons = [
                ("Log Reading", self._open_entry_popup),
                ("View by Date", self._open_day_popup),
                ("Export CSV", self._on_export_csv),
                ("Export Excel", self._on_export_xlsx),
                ("Assistant", self._open_assistant_popup),
                ("Sign out", self._on_sign_out),
            ]
            for text, handler in buttons:
                btn = Button(text=text)
                btn.bind(on_press=handler)
                actions.add_widget(btn)
            root.add_widget(actions)

            self.status = Label(text="", size_hint_y=None, height=30)
            root.add_widget(self.status)

            self.stats_label = Label(text="", size_hint_y=None, height=60)
            root.add_widget(self.stats_label)

            body = BoxLayout(orientation="horizontal", spacing=8)
            body.add_widget(self._build_chart_tabs())
            side = BoxLayout(orientation="vertical", spacing=4, size_hint_x=0.4)
            side.add_widget(Label(text="Smart Insights", size_hint_y=None, height=28))
            self.insights_box = BoxLayout(orientation="vertical", spacing=4)
            side.add_widget(self.insights_box)
            side.add_widget(Label(text="Recent Readings", size_hint_y=None, height=28))
            self.recent_box = BoxLayout(orientation="vertical", spacing=2)
            side.add_widget(self.recent_box)
            body.add_widget(side)
            root.add_widget(body)

            self.session = self.store.get_session()
            if self.session is None:
                self._open_login_popup()
            else:
                self._reload()
            return root

        def _build_chart_tabs(self) -> BoxLayout:
            box = BoxLayout(orientation="vertical", spacing=4)
            tabs = BoxLayout(orientation="horizontal", size_hint_y=None, height=36)
            labels = {
                ChartView.DAILY: "Today",
                ChartView.WEEKLY: "This Week",
                ChartView.MONTHLY: "This Month",
            }
            for view, label in labels.items():
                selected = view.value == self.app_config.chart_view
                btn = ToggleButton(
                    text=label,
                    group="chart_view",
                    state="down" if selected else "normal",
                )
                btn.bind(on_press=lambda _btn, v=view: self._select_view(v))
                tabs.add_widget(btn)
            box.add_widget(tabs)
            self.chart_preview = TextInput(readonly=True, multiline=True, do_wrap=False)
            if self._mono_font:
                self.chart_preview.font_name = self._mono_font
            box.add_widget(self.chart_preview)
            return box

        def _on_key_down(
            self,
            _window: object,
            keycode: int,
            _scancode: int,
            _text: str,
            _modifiers: list[str],
        ) -> bool:
            # Esc: leave fullscreen or close the app.
            if keycode != 27:
                return False
            if Window.fullscreen:
                Window.fullscreen = False
            else:
                self.stop()
            return True

        # -- auth ------------------------------------------------------------

        def _open_login_popup(self) -> None:
            content = BoxLayout(orientation="vertical", spacing=6, padding=8)
            email = TextInput(
                text=self.app_config.last_email, hint_text="Email", multiline=False
            )
            password = TextInput(hint_text="Password", password=True, multiline=False)
            name = TextInput(hint_text="Full name (sign up)", multiline=False)
            message = Label(text="", size_hint_y=None, height=30)
            for widget in (email, password, name, message):
                content.add_widget(widget)
            footer = BoxLayout(orientation="horizontal", size_hint_y=None, height=42)
            sign_in_btn = Button(text="Sign in")
            sign_up_btn = Button(text="Sign up")
            forgot_btn = Button(text="Forgot password")
            for btn in (sign_in_btn, sign_up_btn, forgot_btn):
                footer.add_widget(btn)
            content.add_widget(footer)
            popup = Popup(
                title="Sign in to GlucoTracker",
                content=content,
                size_hint=(0.7, 0.7),
                auto_dismiss=False,
            )

            def do_sign_in(*_: object) -> None:
                try:
                    self.session = self.store.sign_in(email.text, password.text)
                except GlucoTrackerError as exc:
                    message.text = str(exc)
                    return
                self.app_config = replace(
                    self.app_config, last_email=self.session.user.email
                )
                self.store.save_config(self.app_config)
                popup.dismiss()
                self._reload()

            def do_sign_up(*_: object) -> None:
                try:
                    self.store.sign_up(email.text, password.text, name.text)
                except GlucoTrackerError as exc:
                    message.text = str(exc)
                    return
                do_sign_in()

            def do_forgot(*_: object) -> None:
                try:
                    token = self.store.request_password_reset(email.text)
                except GlucoTrackerError as exc:
                    message.text = str(exc)
                    return
                message.text = "If the account exists, a reset token was issued."
                if token is not None:
                    self._open_reset_popup(token)

            sign_in_btn.bind(on_press=do_sign_in)
            sign_up_btn.bind(on_press=do_sign_up)
            forgot_btn.bind(on_press=do_forgot)
            popup.open()

        def _open_reset_popup(self, token: str) -> None:
            content = BoxLayout(orientation="vertical", spacing=6, padding=8)
            token_input = TextInput(text=token, multiline=False)
            password = TextInput(
                hint_text="New password", password=True, multiline=False
            )
            message = Label(text="", size_hint_y=None, height=30)
            save_btn = Button(text="Update password", size_hint_y=None, height=42)
            for widget in (token_input, password, message, save_btn):
                content.add_widget(widget)
            popup = Popup(title="Reset password", content=content, size_hint=(0.6, 0.5))

            def do_reset(*_: object) -> None:
                try:
                    self.store.reset_password(token_input.text.strip(), password.text)
                except GlucoTrackerError as exc:
                    message.text = str(exc)
                    return
                popup.dismiss()

            save_btn.bind(on_press=do_reset)
            popup.open()

        def _on_sign_out(self, _: object) -> None:
            self.store.sign_out()
            self.session = None
            self.readings = []
            self._refresh()
            self._open_login_popup()

        # -- readings --------------------------------------------------------

        def _reload(self) -> None:
            if self.session is None:
                return
            try:
                self.readings = self.store.list_readings(self.session.user.id)
            except Exception as exc:
                self._show_error("load readings", exc)
                return
            self._refresh()
            self._set_status(
                f"Welcome back, {self.session.user.display_name}"
                f" - {len(self.readings)} readings"
            )

        def _open_entry_popup(self, _: object) -> None:
            if self.session is None:
                self._open_login_popup()
                return
            content = BoxLayout(orientation="vertical", spacing=6, padding=8)
            value = TextInput(hint_text="Blood sugar (mg/dL)", multiline=False)
            reading_type = Spinner(
                text="Select type", values=[t.value for t in KNOWN_TYPES]
            )
            meal = TextInput(hint_text="Meal (optional)", multiline=False)
            medication = TextInput(hint_text="Medication (optional)", multiline=False)
            notes = TextInput(hint_text="Notes (optional)")
            message = Label(text="", size_hint_y=None, height=30)
            save_btn = Button(text="Save Reading", size_hint_y=None, height=42)
            fields = (value, reading_type, meal, medication, notes, message, save_btn)
            for widget in fields:
                content.add_widget(widget)
            popup = Popup(
                title="Log Blood Sugar", content=content, size_hint=(0.7, 0.85)
            )

            def do_save(*_: object) -> None:
                selected = reading_type.text
                if selected == "Select type":
                    selected = ""
                try:
                    reading = build_reading(
                        value.text,
                        selected,
                        notes=notes.text,
                        meal=meal.text,
                        medication=medication.text,
                    )
                    saved = self.store.insert_reading(self.session.user.id, reading)
                except GlucoTrackerError as exc:
                    message.text = str(exc)
                    return
                except Exception as exc:
                    popup.dismiss()
                    self._show_error("save reading", exc)
                    return
                popup.dismiss()
                self.readings = [saved, *self.readings]
                self._refresh()
                self._set_status(f"Saved {saved.value:g} mg/dL.")
                if classify(saved.value, saved.type) is RiskLevel.CRITICAL:
                    self._open_emergency_popup(saved.value)

            save_btn.bind(on_press=do_save)
            popup.open()

        def _open_emergency_popup(self, value: float) -> None:
            headline, steps = emergency_advice(value)
            text = headline + "\n\n" + "\n".join(f"- {s}" for s in steps)
            content = BoxLayout(orientation="vertical", spacing=6, padding=8)
            content.add_widget(Label(text=text, color=risk_color(RiskLevel.CRITICAL)))
            ok_btn = Button(text="I Understand", size_hint_y=None, height=42)
            content.add_widget(ok_btn)
            popup = Popup(
                title="Emergency Alert", content=content, size_hint=(0.7, 0.6)
            )
            ok_btn.bind(on_press=lambda *_args: popup.dismiss())
            popup.open()

        def _open_day_popup(self, _: object) -> None:
            content = BoxLayout(orientation="vertical", spacing=6, padding=8)
            day_input = TextInput(
                text=date.today().isoformat(), hint_text="YYYY-MM-DD", multiline=False
            )
            listing = TextInput(readonly=True, multiline=True)
            show_btn = Button(text="Show", size_hint_y=None, height=40)
            content.add_widget(day_input)
            content.add_widget(show_btn)
            content.add_widget(listing)
            popup = Popup(title="View by Date", content=content, size_hint=(0.8, 0.8))

            def do_show(*_: object) -> None:
                try:
                    day = date.fromisoformat(day_input.text.strip())
                except ValueError:
                    listing.text = "Enter a date as YYYY-MM-DD."
                    return
                day_readings = readings_on_day(self.readings, day)
                suffix = "" if len(day_readings) == 1 else "s"
                lines = [
                    f"Readings for {day:%B %d, %Y}: "
                    f"{len(day_readings)} reading{suffix} found"
                ]
                lines.extend(_reading_line(r) for r in day_readings)
                if not day_readings:
                    logged = sorted(days_with_readings(self.readings), reverse=True)
                    if logged:
                        lines.append("")
                        lines.append("Days with readings:")
                        lines.extend(d.isoformat() for d in logged[:10])
                listing.text = "\n".join(lines)

            show_btn.bind(on_press=do_show)
            do_show()
            popup.open()

        def _open_assistant_popup(self, _: object) -> None:
            content = BoxLayout(orientation="vertical", spacing=6, padding=8)
            transcript = TextInput(
                readonly=True, multiline=True, text=f"Assistant: {assistant.GREETING}"
            )
            question = TextInput(
                hint_text="Ask about blood sugar, food, exercise...", multiline=False
            )
            content.add_widget(transcript)
            content.add_widget(question)
            popup = Popup(title="AI Assistant", content=content, size_hint=(0.8, 0.8))

            def do_ask(*_: object) -> None:
                text = question.text
                if not text.strip():
                    return
                answer = assistant.reply(text)
                transcript.text += f"\n\nYou: {text}\n\nAssistant: {answer}"
                question.text = ""

            question.bind(on_text_validate=do_ask)
            popup.open()

        # -- export ----------------------------------------------------------

        def _export_dir(self) -> Path:
            if self.app_config.export_dir:
                return Path(self.app_config.export_dir).expanduser()
            return Path.cwd() / "exports"

        def _on_export_csv(self, _: object) -> None:
            try:
                out_path = write_csv(self.readings, self._export_dir())
            except Exception as exc:
                self._show_error("export", exc)
                return
            self._set_status(f"CSV written: {out_path}")

        def _on_export_xlsx(self, _: object) -> None:
            stamp = datetime.now(tz=_LOCAL_TZ).strftime("%Y-%m-%d_%H-%M-%S")
            out_path = self._export_dir() / f"glucotracker-doctor-{stamp}.xlsx"
            try:
                write_doctor_xlsx(self.readings, out_path, ExcelLayout())
            except Exception as exc:
                self._show_error("export", exc)
                return
            self._set_status(f"Excel written: {out_path}")

        # -- rendering -------------------------------------------------------

        def _select_view(self, view: ChartView) -> None:
            self.app_config = replace(self.app_config, chart_view=view.value)
            self.store.save_config(self.app_config)
            self._refresh_chart()

        def _refresh(self) -> None:
            self._refresh_stats(quick_stats(self.readings))
            self._refresh_insights()
            self._refresh_recent()
            self._refresh_chart()

        def _refresh_stats(self, stats: QuickStats) -> None:
            if self.stats_label is None:
                return
            avg = (
                "No data"
                if stats.overall_average is None
                else f"{stats.overall_average} mg/dL"
            )
            pct = (
                "No data"
                if stats.in_range_percentage is None
                else f"{stats.in_range_percentage}%"
            )
            by_type = "  ".join(
                f"{t.label}: {v}" for t, v in stats.average_by_type.items()
            )
            self.stats_label.text = (
                f"7-day average: {avg}   In range: {pct}   "
                f"Total readings: {stats.total_readings}\n{by_type}"
            )

        def _refresh_insights(self) -> None:
            if self.insights_box is None:
                return
            self.insights_box.clear_widgets()
            for insight in generate_insights(self.readings):
                self.insights_box.add_widget(
                    Label(
                        text=f"{insight.title}\n{insight.description}",
                        color=_insight_color(insight.level.value),
                        halign="left",
                    )
                )

        def _refresh_recent(self) -> None:
            if self.recent_box is None:
                return
            self.recent_box.clear_widgets()
            latest = recent_readings(self.readings)
            if not latest:
                self.recent_box.add_widget(Label(text="No readings yet"))
            for reading in latest:
                risk = classify(reading.value, reading.type)
                self.recent_box.add_widget(
                    Label(text=_reading_line(reading), color=risk_color(risk))
                )

        def _refresh_chart(self) -> None:
            if self.chart_preview is None:
                return
            view = ChartView(self.app_config.chart_view)
            series = chart_series(filter_by_window(self.readings, view.window), view)
            if series.empty:
                self.chart_preview.text = "No readings in this period."
                return
            columns = ["time", "value", "type", "risk"]
            self.chart_preview.text = series[columns].to_string(index=False)

        def _set_status(self, text: str) -> None:
            if self.status is not None:
                self.status.text = text

        def _show_error(self, action: str, exc: Exception) -> None:
            logger.error("Failed to %s: %s", action, exc)
            error_type = type(exc).__name__
            self._set_status(f"Failed to {action} ({error_type}): {exc}")
            if self.chart_preview is not None:
                self.chart_preview.text = traceback.format_exc()

    GlucoTrackerApp().run()
    return 0


def _reading_line(reading: Reading) -> str:
    risk = classify(reading.value, reading.type)
    return (
        f"{reading.value:g} mg/dL  {reading.type_name.replace('-', ' ')}  "
        f"{reading.timestamp:%b %d, %H:%M}  [{risk.value}]"
    )


def _insight_color(level: str) -> tuple[float, float, float, float]:
    mapping = {
        "info": RiskLevel.LOW,
        "warning": RiskLevel.HIGH,
        "critical": RiskLevel.CRITICAL,
    }
    return risk_color(mapping.get(level))
