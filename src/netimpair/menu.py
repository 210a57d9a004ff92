"""
Menu state machine for the interactive front end.

States: MAIN_MENU, IMPAIRMENT_FORM, BANDWIDTH_FORM, RESULT_VIEW and the
terminal EXITED. Workflows run only inside transition actions; rendering
is left to the caller (see console.py).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import InvalidProfileError, InvalidTransitionError
from .profile import ImpairmentProfile
from .workflows import ImpairmentSession

logger = logging.getLogger(__name__)


class MenuState(str, Enum):
    MAIN_MENU = "main-menu"
    IMPAIRMENT_FORM = "impairment-form"
    BANDWIDTH_FORM = "bandwidth-form"
    RESULT_VIEW = "result-view"
    EXITED = "exited"


SETUP = "1"
DISPLAY = "2"
NORMAL_MODE = "3"
DELETE_BRIDGE = "4"

MAIN_MENU_OPTIONS = [
    (SETUP, "Setup Netem Bridge and Impairment"),
    (DISPLAY, "Display Impact on Bridge"),
    (NORMAL_MODE, "Bridge without impairment (Normal Mode)"),
    (DELETE_BRIDGE, "Delete Bridge Interface and Renew DHCP/DNS"),
]


@dataclass
class ResultView:
    """What the result screen shows after a workflow."""

    title: str
    lines: list[str] = field(default_factory=list)
    succeeded: bool = True


class MenuStateMachine:
    """
    Drives the session from user events.

    Events: select(choice), submit_impairment(...), submit_bandwidth(...),
    cancel(), acknowledge(). An event that the current state does not
    accept raises InvalidTransitionError. Invalid form input keeps the
    state and sets ``error``.
    """

    def __init__(self, session: ImpairmentSession):
        self.session = session
        self.state = MenuState.MAIN_MENU
        self.form: dict[str, str] = {}
        self.result: Optional[ResultView] = None
        self.error: Optional[str] = None
        self.aborted = False

    def _require(self, event: str, *states: MenuState) -> None:
        if self.state not in states:
            raise InvalidTransitionError(self.state, event)

    def _goto(self, state: MenuState) -> None:
        logger.debug(f"Menu: {self.state.value} -> {state.value}")
        self.state = state

    def select(self, choice: str) -> MenuState:
        """Pick a main menu entry."""
        self._require("select", MenuState.MAIN_MENU)
        self.error = None
        choice = choice.strip()

        if choice == SETUP:
            self.form = {}
            self._goto(MenuState.IMPAIRMENT_FORM)
        elif choice == DISPLAY:
            report = self.session.display()
            self._show("Display Impact on Bridge", report.render().splitlines(), True)
        elif choice == NORMAL_MODE:
            outcomes = list(self.session.reset().values())
            self._show(
                "Bridge without impairment (Normal Mode)",
                [o.describe() for o in outcomes],
                all(o.succeeded for o in outcomes),
            )
        elif choice == DELETE_BRIDGE:
            outcomes = self.session.delete_bridge()
            self._show(
                "Delete Bridge Interface and Renew DHCP/DNS",
                [o.describe() for o in outcomes],
                all(o.succeeded for o in outcomes),
            )
        else:
            self.error = f"Unknown selection: {choice!r}"
        return self.state

    def submit_impairment(self, loss: str = "0", delay: str = "0", jitter: str = "0") -> MenuState:
        """Accept the loss/delay/jitter form."""
        self._require("submit_impairment", MenuState.IMPAIRMENT_FORM)
        try:
            ImpairmentProfile.from_form(loss, delay, jitter)
        except InvalidProfileError as e:
            self.error = str(e)
            return self.state

        self.error = None
        self.form = {"loss": loss, "delay": delay, "jitter": jitter}
        self._goto(MenuState.BANDWIDTH_FORM)
        return self.state

    def submit_bandwidth(self, bandwidth: str = "") -> MenuState:
        """Accept the bandwidth form and run the setup workflow."""
        self._require("submit_bandwidth", MenuState.BANDWIDTH_FORM)
        try:
            profile = ImpairmentProfile.from_form(bandwidth=bandwidth, **self.form)
        except InvalidProfileError as e:
            self.error = str(e)
            return self.state

        self.error = None
        result = self.session.setup(profile)
        self._show(
            "Setup Netem Bridge and Impairment",
            [f"Profile: {profile.summary()}"] + [o.describe() for o in result.outcomes()],
            result.succeeded,
        )
        return self.state

    def cancel(self) -> MenuState:
        """Back out of a form, or leave the program from the main menu."""
        self._require(
            "cancel",
            MenuState.MAIN_MENU,
            MenuState.IMPAIRMENT_FORM,
            MenuState.BANDWIDTH_FORM,
            MenuState.RESULT_VIEW,
        )
        self.error = None
        if self.state is MenuState.MAIN_MENU:
            logger.info("Program terminated by the user.")
            self._goto(MenuState.EXITED)
        else:
            self.form = {}
            self.result = None
            self._goto(MenuState.MAIN_MENU)
        return self.state

    def abort(self) -> MenuState:
        """Leave immediately from any state."""
        logger.info("Program aborted by the user.")
        self.aborted = True
        self._goto(MenuState.EXITED)
        return self.state

    def acknowledge(self) -> MenuState:
        """Dismiss the result view."""
        self._require("acknowledge", MenuState.RESULT_VIEW)
        self.result = None
        self._goto(MenuState.MAIN_MENU)
        return self.state

    def _show(self, title: str, lines: list[str], succeeded: bool) -> None:
        self.result = ResultView(title=title, lines=lines, succeeded=succeeded)
        self._goto(MenuState.RESULT_VIEW)
