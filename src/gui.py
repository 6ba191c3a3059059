# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Graphical viewer for the replay."""
import matplotlib.pyplot as plt
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from PySide6.QtWidgets import QApplication, QWidget, QVBoxLayout, QLabel, QGraphicsView, QGraphicsScene, QGraphicsEllipseItem, QGraphicsPathItem, QGraphicsItem, QPushButton, QHBoxLayout, QCheckBox, QSizePolicy
from PySide6.QtCore import QTimer, Qt, QEvent, QPointF
from PySide6.QtGui import QColor, QPen, QBrush, QPainterPath, QMouseEvent
from application import Application
from eventbus import Events
from geometry_utils.geopoint import project
from logging_utils import get_logger
from plugin_registry import register_renderer, register_timer_service

logger = get_logger("gui")

MARKER_RADIUS = 4.0
TRACE_COLOR = QColor(40, 110, 200, 110)
MARKER_COLOR = QColor(220, 70, 40, 200)
ENTITY_KEY = 0


class QtTimerHandle:
    """Handle around a QTimer."""
    def __init__(self, service, timer: QTimer):
        """Initialize the instance."""
        self._service = service
        self._timer = timer

    @property
    def active(self) -> bool:
        """Return True while the timer can still fire."""
        if self._timer is None or not self._service.owns(self._timer):
            return False
        return self._timer.isActive()

    def cancel(self) -> None:
        """Stop the timer."""
        if self._timer is None:
            return
        # single-shot timers are released (and deleted) once they fire
        if self._service.owns(self._timer):
            self._timer.stop()
            self._service._release(self._timer)
        self._timer = None


class QtTimerService:
    """Timer service running on the Qt event loop."""
    def __init__(self):
        """Initialize the instance."""
        self._timers = set()

    def _create(self, interval_ms: float, callback, single_shot: bool) -> QtTimerHandle:
        timer = QTimer()
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(0, int(round(interval_ms))))
        handle = QtTimerHandle(self, timer)
        if single_shot:
            def fire():
                self._release(timer)
                callback()
            timer.timeout.connect(fire)
        else:
            timer.timeout.connect(callback)
        self._timers.add(timer)
        timer.start()
        return handle

    def owns(self, timer: QTimer) -> bool:
        """Return True while `timer` is alive and managed by this service."""
        return timer in self._timers

    def _release(self, timer: QTimer) -> None:
        if timer in self._timers:
            self._timers.discard(timer)
            timer.deleteLater()

    def call_every(self, interval_ms: float, callback) -> QtTimerHandle:
        """Invoke `callback` every `interval_ms` until cancelled."""
        return self._create(max(1.0, interval_ms), callback, single_shot=False)

    def call_later(self, delay_ms: float, callback) -> QtTimerHandle:
        """Invoke `callback` once after `delay_ms`."""
        return self._create(delay_ms, callback, single_shot=True)


class SceneMarker:
    """Marker drawn as a dot in the scene."""
    def __init__(self, renderer, entity, coords):
        """Initialize the instance."""
        self.renderer = renderer
        r = MARKER_RADIUS
        self.item = QGraphicsEllipseItem(-r, -r, 2 * r, 2 * r)
        self.item.setBrush(QBrush(MARKER_COLOR))
        self.item.setPen(QPen(Qt.PenStyle.NoPen))
        self.item.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIgnoresTransformations, True)
        self.item.setZValue(2)
        self.item.setData(ENTITY_KEY, getattr(entity, "id", None))
        self.item.setPos(renderer.to_scene(coords))
        renderer.marker_group_add(self.item)

    def show(self):
        """Show the marker."""
        self.item.setVisible(True)

    def hide(self):
        """Hide the marker."""
        self.item.setVisible(False)

    def move_to(self, coords):
        """Move the marker."""
        self.item.setPos(self.renderer.to_scene(coords))


class SceneTrace:
    """Trace drawn as a polyline in the scene."""
    def __init__(self, renderer, coords):
        """Initialize the instance."""
        self.renderer = renderer
        self.points = [renderer.to_scene(coords)]
        self.item = QGraphicsPathItem()
        pen = QPen(TRACE_COLOR)
        pen.setWidthF(1.5)
        pen.setCosmetic(True)
        self.item.setPen(pen)
        self.item.setZValue(1)
        renderer.trace_group_add(self.item)
        self._redraw()

    def append_point(self, coords):
        """Append a new end point."""
        self.points.append(self.renderer.to_scene(coords))
        self._redraw()

    def update_last_point(self, coords):
        """Overwrite the end point."""
        self.points[-1] = self.renderer.to_scene(coords)
        self._redraw()

    def clear(self):
        """Keep only the current end point."""
        self.points = self.points[-1:]
        self._redraw()

    def _redraw(self):
        path = QPainterPath(self.points[0])
        for point in self.points[1:]:
            path.lineTo(point)
        self.item.setPath(path)


class SceneRenderer:
    """Renderer drawing markers and traces into a QGraphicsScene."""
    def __init__(self, settings: dict = None, gui_config: dict = None):
        """Initialize the instance."""
        gui_config = gui_config or {}
        lng, lat = gui_config.get("center", [11.574599, 48.132988])
        self.center = project(lng, lat)
        # metres per scene pixel
        self.scale = float(gui_config.get("scale", 4.0))
        self.scene = QGraphicsScene()
        self.scene.setBackgroundBrush(QColor(240, 240, 240))
        self.markers = []
        self.traces = []
        self.markers_visible = True
        self.traces_visible = True

    def to_scene(self, coords) -> QPointF:
        """Map projected metres to scene coordinates (y grows downwards)."""
        return QPointF((coords[0] - self.center[0]) / self.scale, -(coords[1] - self.center[1]) / self.scale)

    def marker_group_add(self, item):
        """Add a marker item to the scene."""
        self.scene.addItem(item)
        if not self.markers_visible:
            item.setOpacity(0.0)

    def trace_group_add(self, item):
        """Add a trace item to the scene."""
        self.scene.addItem(item)
        item.setVisible(self.traces_visible)

    def create_marker(self, entity, coords) -> SceneMarker:
        """Create a marker."""
        marker = SceneMarker(self, entity, coords)
        self.markers.append(marker)
        return marker

    def create_trace(self, coords) -> SceneTrace:
        """Create a trace."""
        trace = SceneTrace(self, coords)
        self.traces.append(trace)
        return trace

    def clear_traces(self):
        """Clear every trace."""
        for trace in self.traces:
            trace.clear()

    def set_visibility_markers(self, status: bool):
        """Show or hide the marker layer."""
        self.markers_visible = status
        for marker in self.markers:
            # opacity keeps the per-marker hidden state intact
            marker.item.setOpacity(1.0 if status else 0.0)

    def set_visibility_traces(self, status: bool):
        """Show or hide the trace layer."""
        self.traces_visible = status
        for trace in self.traces:
            trace.item.setVisible(status)


class GuiFactory():
    """Gui factory."""
    @staticmethod
    def create_gui(gui_config: dict, app: Application):
        """Create gui."""
        if gui_config.get("_id", "2D") != "2D":
            raise ValueError(f"Invalid gui type: {gui_config.get('_id')} valid types are '2D'")
        if not isinstance(app.renderer, SceneRenderer):
            raise ValueError("The 2D viewer needs the '2D' renderer")
        return ReplayWindow(app, app.renderer)


class ReplayWindow(QWidget):
    """Replay window."""
    def __init__(self, app: Application, renderer: SceneRenderer):
        """Initialize the instance."""
        super().__init__()
        self.app = app
        self.renderer = renderer
        self.setWindowTitle("Bike replay")
        self.clock_label = QLabel("Loading data...")
        self.start_button = QPushButton("Start")
        self.stop_button = QPushButton("Stop")
        self.step_button = QPushButton("Step")
        self.clear_button = QPushButton("Clear lines")
        self.start_button.setEnabled(False)
        self.step_button.setEnabled(False)
        self.markers_box = QCheckBox("Markers")
        self.markers_box.setChecked(True)
        self.traces_box = QCheckBox("Traces")
        self.traces_box.setChecked(True)
        self.start_button.clicked.connect(self.app.start)
        self.stop_button.clicked.connect(self.app.stop)
        self.step_button.clicked.connect(self.app.step)
        self.clear_button.clicked.connect(self.app.clear_lines)
        self.markers_box.toggled.connect(self.renderer.set_visibility_markers)
        self.traces_box.toggled.connect(self.renderer.set_visibility_traces)

        button_layout = QHBoxLayout()
        for widget in (self.start_button, self.stop_button, self.step_button, self.clear_button, self.markers_box, self.traces_box):
            button_layout.addWidget(widget)

        self.view = QGraphicsView(self.renderer.scene)
        self.view.setMinimumSize(640, 640)
        self.view.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.view.setDragMode(QGraphicsView.DragMode.ScrollHandDrag)
        self.view.viewport().installEventFilter(self)

        left_layout = QVBoxLayout()
        left_layout.addWidget(self.clock_label)
        left_layout.addLayout(button_layout)
        left_layout.addWidget(self.view, 1)

        self.info_title = QLabel("")
        self.info_text = QLabel("")
        self.info_text.setAlignment(Qt.AlignmentFlag.AlignTop)
        self.figure, self.ax = plt.subplots(figsize=(3, 3))
        self.canvas = FigureCanvas(self.figure)
        self.canvas.setMinimumSize(260, 220)
        self.info_panel = QWidget()
        info_layout = QVBoxLayout()
        info_layout.addWidget(self.info_title)
        info_layout.addWidget(self.canvas)
        info_layout.addWidget(self.info_text, 1)
        self.info_panel.setLayout(info_layout)
        self.info_panel.setVisible(False)
        self._close_timer = QTimer(self)
        self._close_timer.setSingleShot(True)
        self._close_timer.setInterval(3000)
        self._close_timer.timeout.connect(lambda: self.info_panel.setVisible(False))

        main_layout = QHBoxLayout()
        main_layout.addLayout(left_layout, 1)
        main_layout.addWidget(self.info_panel)
        self.setLayout(main_layout)

        self.app.on(Events.CLOCK, self.update_clock)
        self.app.on(Events.LOADED_CHUNK, self.chunk_loaded)
        self.app.on(Events.LOAD_FAILED, self.load_failed)
        self.app.on(Events.SELECTED_ENTITY, self.show_entity)
        logger.info("GUI created successfully")

    def eventFilter(self, watched, event):
        """Handle clicks on markers."""
        if watched == self.view.viewport() and event.type() == QEvent.Type.MouseButtonPress:
            if isinstance(event, QMouseEvent) and event.button() == Qt.MouseButton.LeftButton:
                item = self.view.itemAt(event.position().toPoint())
                entity_id = item.data(ENTITY_KEY) if item is not None else None
                if entity_id is not None:
                    self.app.select_entity(entity_id)
                    return True
        return super().eventFilter(watched, event)

    def update_clock(self, moment):
        """Show the replay time."""
        self.clock_label.setText(moment.strftime("%Y-%m-%d %H:%M:%S UTC"))

    def chunk_loaded(self, descriptor):
        """Enable the controls once data is available."""
        self.start_button.setEnabled(True)
        self.step_button.setEnabled(True)

    def load_failed(self, error):
        """Report a failed chunk load."""
        self.clock_label.setText(f"Data error: {error}")

    def show_entity(self, entity):
        """Show the trip summary of the selected bike for a few seconds."""
        durations = [movement.duration for movement in entity.moves.movements]
        self.info_title.setText(f"Bike {entity.id}")
        self.info_text.setText("\n".join(entity.trip_summary()))
        self.ax.clear()
        self.ax.bar(range(1, len(durations) + 1), durations, color="#286ec8")
        self.ax.set_xlabel("Trip")
        self.ax.set_ylabel("Duration [s]")
        self.figure.tight_layout()
        self.canvas.draw_idle()
        self.info_panel.setVisible(True)
        self._close_timer.start()

    def closeEvent(self, event):
        """Stop the replay when the window closes."""
        self.app.close()
        plt.close(self.figure)
        super().closeEvent(event)


def run_gui(gui_config: dict, app: Application, qt_app: QApplication) -> int:
    """Load the data, show the window and run the Qt event loop."""
    window = GuiFactory.create_gui(gui_config, app)
    window.show()
    app.load_data()
    return qt_app.exec()


register_timer_service("qt", QtTimerService)
register_renderer("2d", lambda settings: SceneRenderer(settings, settings.get("gui")))
