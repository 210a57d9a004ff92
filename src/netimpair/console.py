"""
Plain-terminal front end for the menu state machine.
"""

from typing import Callable

from .menu import MAIN_MENU_OPTIONS, MenuState, MenuStateMachine

BANNER = "** WAN impairment test tool **"
CANCEL_WORDS = ("q", "quit", "cancel")


class ConsoleMenu:
    """
    Renders each menu state and feeds user input back as events.

    Entering "q" cancels the current form (or exits from the main menu).
    Ctrl-C or end of input aborts.
    """

    def __init__(
        self,
        machine: MenuStateMachine,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ):
        self.machine = machine
        self.input = input_fn
        self.output = output_fn

    def run(self) -> int:
        """
        Run until the user exits.

        Returns:
            0 when the user exited, 1 when aborted.
        """
        try:
            while self.machine.state is not MenuState.EXITED:
                self._step()
        except (EOFError, KeyboardInterrupt):
            self.machine.abort()

        if self.machine.aborted:
            self.output("Program aborted.")
            return 1
        self.output("Program terminated.")
        return 0

    def _ask(self, prompt: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        answer = self.input(f"{prompt}{suffix}: ").strip()
        return answer or default

    def _step(self) -> None:
        machine = self.machine
        if machine.error:
            self.output(f"Error: {machine.error}")

        if machine.state is MenuState.MAIN_MENU:
            self.output("")
            self.output(BANNER)
            for key, label in MAIN_MENU_OPTIONS:
                self.output(f"  {key}) {label}")
            choice = self._ask("Please select (q to exit)")
            if choice.lower() in CANCEL_WORDS:
                machine.cancel()
            else:
                machine.select(choice)

        elif machine.state is MenuState.IMPAIRMENT_FORM:
            self.output("Impairment Parameters (q to cancel)")
            values = {}
            for key, prompt in (
                ("loss", "Packet loss (%)"),
                ("delay", "Delay (ms)"),
                ("jitter", "Jitter (ms)"),
            ):
                answer = self._ask(prompt, "0")
                if answer.lower() in CANCEL_WORDS:
                    machine.cancel()
                    return
                values[key] = answer
            machine.submit_impairment(**values)

        elif machine.state is MenuState.BANDWIDTH_FORM:
            answer = self._ask("Enter bandwidth limitation (Mbps), empty for none")
            if answer.lower() in CANCEL_WORDS:
                machine.cancel()
            else:
                machine.submit_bandwidth(answer)

        elif machine.state is MenuState.RESULT_VIEW:
            result = machine.result
            self.output("")
            self.output(f"== {result.title} ==")
            for line in result.lines:
                self.output(line)
            if not result.succeeded:
                self.output("Some steps failed; see the activity log for details.")
            self.input("Press Enter to continue")
            machine.acknowledge()
