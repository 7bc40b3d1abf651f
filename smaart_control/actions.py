"""User-facing actions mapped onto the connection manager's command API."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from smaart_control.network.manager import ConnectionManager

LOGGER = logging.getLogger(__name__)

ActionCallback = Callable[[Dict[str, Any]], Awaitable[Any]]


class ActionError(ValueError):
    """Raised for unknown actions or invalid option values."""


@dataclass(frozen=True)
class ActionOption:
    id: str
    label: str
    type: str = "textinput"
    default: Any = None
    required: bool = False
    choices: Tuple[Tuple[str, str], ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None

    def resolve(self, options: Mapping[str, Any]) -> Any:
        value = options.get(self.id, self.default)
        if value is None or value == "":
            if self.required:
                raise ActionError(f"Option '{self.id}' is required")
            return value
        if self.choices and value not in {choice_id for choice_id, _ in self.choices}:
            raise ActionError(f"Option '{self.id}' must be one of {[c for c, _ in self.choices]}, got {value!r}")
        if self.type == "number":
            try:
                value = float(value)
            except (TypeError, ValueError) as exc:
                raise ActionError(f"Option '{self.id}' must be a number, got {value!r}") from exc
            if self.min is not None and value < self.min:
                raise ActionError(f"Option '{self.id}' must be >= {self.min}")
            if self.max is not None and value > self.max:
                raise ActionError(f"Option '{self.id}' must be <= {self.max}")
        return value


@dataclass(frozen=True)
class ActionDefinition:
    action_id: str
    name: str
    callback: ActionCallback
    options: Sequence[ActionOption] = field(default_factory=tuple)


def _direction(default: str, *choices: Tuple[str, str], label: str = "Direction") -> ActionOption:
    return ActionOption(id="selectedDirection", label=label, type="dropdown", default=default, choices=choices)


_IN_OUT = (("+", "In"), ("-", "Out"))
_TEXT_REQUIRED = {"type": "textinput", "required": True}


class ActionCatalogue:
    """In-memory registry of actions; performs no protocol logic itself."""

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager
        self._actions: Dict[str, ActionDefinition] = {}
        for definition in self._build_definitions():
            self.register(definition)

    def register(self, definition: ActionDefinition) -> ActionDefinition:
        self._actions[definition.action_id] = definition
        LOGGER.debug("Registered action %s", definition.action_id)
        return definition

    def resolve(self, action_id: str) -> ActionDefinition:
        try:
            return self._actions[action_id]
        except KeyError as exc:
            raise ActionError(f"Unknown action: {action_id}") from exc

    def list_actions(self) -> Dict[str, ActionDefinition]:
        return dict(self._actions)

    async def run(self, action_id: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        """Validate ``options`` against the definition and invoke its callback."""

        definition = self.resolve(action_id)
        provided = options or {}
        resolved = {option.id: option.resolve(provided) for option in definition.options}
        LOGGER.debug("Running action %s with %s", action_id, resolved)
        result = definition.callback(resolved)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _keypress(self, keypress: str) -> ActionCallback:
        async def _send(_options: Dict[str, Any]) -> Any:
            return await self._manager.issue_command(keypress)

        return _send

    def _keypress_with(self, build: Callable[[Dict[str, Any]], str]) -> ActionCallback:
        async def _send(options: Dict[str, Any]) -> Any:
            return await self._manager.issue_command(build(options))

        return _send

    def _build_definitions(self) -> List[ActionDefinition]:
        m = self._manager

        async def _call(method: Callable[..., Awaitable[Any]], *args: Any) -> Any:
            return await method(*args)

        return [
            ActionDefinition("resetAvg", "Reset Average", lambda _o: _call(m.reset_avg)),
            ActionDefinition(
                "selectTabByName",
                "Select Tab By Name",
                lambda o: _call(m.select_tab, o["tabName"]),
                (ActionOption(id="tabName", label="Tab Name", **_TEXT_REQUIRED),),
            ),
            ActionDefinition(
                "startAllMeasurements",
                "Start Measurements By Tab Name",
                lambda o: _call(m.start_all_measurements, o["tabName"]),
                (ActionOption(id="tabName", label="Tab Name", **_TEXT_REQUIRED),),
            ),
            ActionDefinition("startGenerator", "Start signal generator", lambda _o: _call(m.generator_state, True)),
            ActionDefinition("stopGenerator", "Stop signal generator", lambda _o: _call(m.generator_state, False)),
            ActionDefinition(
                "setGeneratorLevel",
                "Set Generator Level",
                lambda o: _call(m.set_generator_level, o["level"]),
                (
                    ActionOption(
                        id="level", label="Level (dB FS)", type="number", default=0, required=True, min=-200, max=0
                    ),
                ),
            ),
            ActionDefinition(
                "startTrackingAll", "Start delay tracking for current tab", lambda _o: _call(m.tracking_state, True)
            ),
            ActionDefinition(
                "stopTrackingAll", "Stop delay tracking for current tab", lambda _o: _call(m.tracking_state, False)
            ),
            ActionDefinition(
                "zoomX",
                "Zoom X Axis",
                self._keypress_with(lambda o: "option + command" + o["selectedDirection"]),
                (_direction("+", *_IN_OUT),),
            ),
            ActionDefinition(
                "zoomY",
                "Zoom Y Axis",
                self._keypress_with(lambda o: o["selectedDirection"]),
                (_direction("+", *_IN_OUT),),
            ),
            ActionDefinition(
                "zoomXY",
                "Zoom X & Y Axis",
                self._keypress_with(lambda o: "command" + o["selectedDirection"]),
                (_direction("+", *_IN_OUT),),
            ),
            ActionDefinition(
                "setZoomPreset",
                "Set Zoom Preset",
                self._keypress_with(lambda o: "option + " + o["zoomPreset"]),
                (
                    ActionOption(
                        id="zoomPreset",
                        label="Preset",
                        type="dropdown",
                        default="5",
                        choices=(("5", "Default zoom"), ("1", "Zoom 1"), ("2", "Zoom 2"), ("3", "Zoom 3"), ("4", "Zoom 4")),
                    ),
                ),
            ),
            ActionDefinition(
                "arrowKeys",
                "Send Arrow Keys",
                self._keypress_with(lambda o: "cursor " + o["selectedDirection"]),
                (_direction("up", ("up", "Up"), ("down", "Down"), ("left", "Left"), ("right", "Right")),),
            ),
            ActionDefinition(
                "cycleZOrder",
                "Cycle Z Order",
                self._keypress_with(lambda o: "Z" if o["selectedDirection"] == "forward" else "shift + Z"),
                (_direction("forward", ("forward", "Forward"), ("backward", "Backward")),),
            ),
            ActionDefinition("hideTrace", "Hide Trace", self._keypress("H")),
            ActionDefinition("hideAllTraces", "Hide All Traces", self._keypress("shift + command + H")),
            ActionDefinition("togglePeakHold", "Toggle Peak Hold", self._keypress("P")),
            ActionDefinition("toggleInputMeters", "Toggle Input Meters", self._keypress("shift + E")),
            ActionDefinition(
                "toggleInputMeterOrientation", "Toggle Input Meter Orientation", self._keypress("shift + option + E")
            ),
            ActionDefinition("toggleSPLHistory", "Toggle SPL History", self._keypress("option + H")),
            ActionDefinition("toggleMeters", "Toggle SPL Meters", self._keypress("E")),
            ActionDefinition(
                "selectViewPreset",
                "Select View Preset",
                self._keypress_with(lambda o: o["viewPreset"]),
                (
                    ActionOption(
                        id="viewPreset",
                        label="Preset",
                        type="dropdown",
                        default="S",
                        choices=(
                            ("S", "Spectrum"),
                            ("T", "Transfer"),
                            *((str(n), f"User View {n}") for n in range(1, 10)),
                            ("0", "Multi-Spectrum"),
                        ),
                    ),
                ),
            ),
            ActionDefinition(
                "moveFrontTrace",
                "Trace Y Offset",
                self._keypress_with(lambda o: "command + cursor " + o["selectedDirection"]),
                (_direction("up", ("up", "Up"), ("down", "Down")),),
            ),
            ActionDefinition("clearTraceOffset", "Clear Top Trace Y Offset", self._keypress("Y")),
            ActionDefinition("clearAllTraceOffset", "Clear All Y Offsets", self._keypress("command + Y")),
            ActionDefinition(
                "toggleBar",
                "Toggle Bar",
                self._keypress_with(lambda o: o["selectedBar"]),
                (
                    ActionOption(
                        id="selectedBar",
                        label="Bar",
                        type="dropdown",
                        default="O",
                        choices=(("O", "Control"), ("U", "Command"), ("B", "Data")),
                    ),
                ),
            ),
            ActionDefinition("lockCursorToPeak", "Lock Cursor To Peak", self._keypress("command + P")),
            ActionDefinition("clearLockedCursor", "Clear Locked Cursor", self._keypress("command + X")),
            ActionDefinition(
                "moveLockedCursor",
                "Move Locked Cursor",
                self._keypress_with(lambda o: "command + cursor " + o["selectedDirection"]),
                (_direction("left", ("left", "Left"), ("right", "Right")),),
            ),
            ActionDefinition("cyclePlot", "Cycle Preferred Plot", self._keypress("M")),
            ActionDefinition(
                "captureTrace",
                "Capture Current Trace",
                lambda o: _call(m.capture_trace, o["traceName"]),
                (ActionOption(id="traceName", label="Trace Name", **_TEXT_REQUIRED),),
            ),
            ActionDefinition(
                "renameTrace",
                "Rename Trace",
                lambda o: _call(m.rename_trace, o["traceName"], o["tracePath"]),
                (
                    ActionOption(id="traceName", label="Trace Name", **_TEXT_REQUIRED),
                    ActionOption(id="tracePath", label="Trace File Path", **_TEXT_REQUIRED),
                ),
            ),
        ]


__all__ = ["ActionCatalogue", "ActionDefinition", "ActionError", "ActionOption"]
