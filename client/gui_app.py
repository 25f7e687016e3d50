"""
ShiftTrack Client GUI Application
Dashboard shell: sign-in, swap in/out with progress, history and bus times.
All behaviour lives in ShiftTrackClient; this module only renders it.
"""

import sys
from datetime import datetime

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (QApplication, QComboBox, QHBoxLayout,
                             QInputDialog, QLabel, QLineEdit, QMainWindow,
                             QMessageBox, QProgressBar, QPushButton,
                             QTableWidget, QTableWidgetItem, QTabWidget,
                             QVBoxLayout, QWidget)

from client.background_worker import SessionTicker
from client.bus import next_bus_from, sorted_times
from client.remote_repository import RepositoryError, onboard_user
from client.timeclock_client import get_client
from shared import db_helpers
from shared.logging_config import get_client_logger
from shared.models import ServerConfig
from shared.utils import InvalidTimeFormat, format_duration


def _local_time(dt) -> str:
    return dt.astimezone().strftime('%H:%M:%S') if dt else '-'


class ShiftTrackClientApp(QMainWindow):
    """Main ShiftTrack client window"""

    def __init__(self) -> None:
        super().__init__()

        self.logger = get_client_logger()
        self.logger.info("Starting ShiftTrack Client GUI...")

        self.client = get_client()
        self.config = db_helpers.load_config()
        self.user = self.config.user_context()
        self.bus_times = []
        self.ticker = None

        self.setWindowTitle('ShiftTrack')
        self.setMinimumSize(460, 520)

        if self.user is None:
            self.show_sign_in()
        else:
            self.show_dashboard()

    # Sign in
    def show_sign_in(self):
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setAlignment(Qt.AlignmentFlag.AlignCenter)

        layout.addWidget(QLabel('Sign in to Track Your Time'))
        self.server_input = QLineEdit(self.config.server_url or 'http://127.0.0.1:5000')
        self.name_input = QLineEdit(self.config.display_name)
        self.name_input.setPlaceholderText('Your name')
        layout.addWidget(self.server_input)
        layout.addWidget(self.name_input)

        button = QPushButton('Sign in')
        button.clicked.connect(self.sign_in)
        layout.addWidget(button)
        self.setCentralWidget(widget)

    def sign_in(self):
        server_url = self.server_input.text().strip()
        name = self.name_input.text().strip()
        try:
            identity = onboard_user(server_url, name)
            self.config = ServerConfig(
                server_url=server_url,
                api_key=identity['api_key'],
                user_id=identity['user_id'],
                display_name=name,
            )
        except (RepositoryError, ValueError) as e:
            QMessageBox.warning(self, 'Sign in failed', str(e))
            return

        db_helpers.save_config(self.config)
        self.client = get_client()
        self.user = self.config.user_context()
        self.show_dashboard()

    def sign_out(self):
        self._stop_ticker()
        for key in ('api_key', 'user_id'):
            db_helpers.set_setting(key, '')
        self.config = db_helpers.load_config()
        self.user = None
        self.show_sign_in()

    # Dashboard
    def show_dashboard(self):
        self.client.restore(self.user)
        self.bus_times = self.client.bus_times(self.user)

        tabs = QTabWidget()
        tabs.addTab(self._build_shift_tab(), 'Shift')
        tabs.addTab(self._build_history_tab(), 'History')
        tabs.addTab(self._build_bus_tab(), 'Bus Timings')
        tabs.currentChanged.connect(self._on_tab_changed)
        self.setCentralWidget(tabs)

        self._start_ticker()

    def _build_shift_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        header = QHBoxLayout()
        header.addWidget(QLabel(f'Welcome, {self.user.display_name}' if self.user.display_name else 'Welcome'))
        sign_out = QPushButton('Sign Out')
        sign_out.clicked.connect(self.sign_out)
        header.addWidget(sign_out)
        layout.addLayout(header)

        self.custom_time_input = QLineEdit()
        self.custom_time_input.setPlaceholderText('Optional start time (HH:MM)')
        self.custom_time_input.setMaxLength(5)
        layout.addWidget(self.custom_time_input)

        self.start_button = QPushButton('Start')
        self.start_button.clicked.connect(self.start_shift)
        layout.addWidget(self.start_button)

        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 1000)
        self.progress_bar.setTextVisible(False)
        layout.addWidget(self.progress_bar)

        self.elapsed_label = QLabel()
        self.remaining_label = QLabel()
        self.bus_label = QLabel()
        self.summary_label = QLabel()
        for label in (self.elapsed_label, self.remaining_label, self.bus_label, self.summary_label):
            label.setAlignment(Qt.AlignmentFlag.AlignCenter)
            layout.addWidget(label)

        self.stop_button = QPushButton('Stop')
        self.stop_button.clicked.connect(self.stop_shift)
        layout.addWidget(self.stop_button)

        self.render(self.client.dashboard(bus_times=self.bus_times))
        return widget

    def render(self, snapshot: dict):
        state = snapshot['state']
        active = state == 'active'
        completed = state == 'completed'

        self.custom_time_input.setVisible(not active)
        self.start_button.setVisible(not active)
        self.stop_button.setVisible(active)
        self.progress_bar.setVisible(active)
        self.remaining_label.setVisible(active)

        self.progress_bar.setValue(int(snapshot['progress'] * 1000))
        self.elapsed_label.setText(f"Elapsed: {snapshot['elapsed_text']}" if active else '')
        if active and snapshot['remaining'].total_seconds() > 0:
            self.remaining_label.setText(f"{snapshot['remaining_text']} left")
        elif active:
            self.remaining_label.setText('You have completed your work duration!')

        if active and snapshot['best_bus']:
            self.bus_label.setText(f"Best Bus After Session: {snapshot['best_bus']}")
        else:
            self.bus_label.setText('')

        if completed:
            self.summary_label.setText(
                f"Session complete!\nSwap In: {_local_time(snapshot['swap_in'])}"
                f"\nSwap Out: {_local_time(snapshot['swap_out'])}"
                f"\nTotal: {format_duration(snapshot['total'])}"
            )
        else:
            self.summary_label.setText('')

    def start_shift(self):
        try:
            self.client.start(self.user, self.custom_time_input.text().strip() or None)
        except InvalidTimeFormat as e:
            QMessageBox.warning(self, 'Invalid time', str(e))
            return
        self.custom_time_input.clear()
        self.render(self.client.dashboard(bus_times=self.bus_times))

    def stop_shift(self):
        answer = QMessageBox.question(self, 'Stop', 'Are you sure you want to swap out?')
        if answer != QMessageBox.StandardButton.Yes:
            return
        self.client.stop(self.user)
        self.render(self.client.dashboard(bus_times=self.bus_times))

    def _start_ticker(self):
        self._stop_ticker()
        self.ticker = SessionTicker(self.client, lambda: self.bus_times,
                                    tick_interval_ms=self.config.tick_interval_ms)
        self.ticker.tick.connect(self.render)
        self.ticker.start()

    def _stop_ticker(self):
        if self.ticker is not None:
            self.ticker.stop()
            self.ticker.wait()
            self.ticker = None

    # History
    def _build_history_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.period_combo = QComboBox()
        self.period_combo.addItem('This Week', 'week')
        self.period_combo.addItem('This Month', 'month')
        self.period_combo.addItem('This Year', 'year')
        self.period_combo.currentIndexChanged.connect(self.load_history)
        layout.addWidget(self.period_combo)

        self.history_table = QTableWidget(0, 4)
        self.history_table.setHorizontalHeaderLabels(['Date', 'Swap In', 'Swap Out', 'Duration'])
        self.history_table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        layout.addWidget(self.history_table)

        self.history_total = QLabel()
        layout.addWidget(self.history_total)

        delete_button = QPushButton('Delete Selected')
        delete_button.clicked.connect(self.delete_selected)
        layout.addWidget(delete_button)
        return widget

    def load_history(self):
        entries, total = self.client.history(self.user, self.period_combo.currentData())
        self.history_entries = entries

        self.history_table.setRowCount(len(entries))
        for row, entry in enumerate(entries):
            values = [
                entry.swap_in.astimezone().strftime('%Y-%m-%d') if entry.swap_in else '-',
                _local_time(entry.swap_in),
                _local_time(entry.swap_out),
                format_duration(entry.duration, seconds=False) if entry.is_complete else '-',
            ]
            for column, value in enumerate(values):
                self.history_table.setItem(row, column, QTableWidgetItem(value))

        self.history_total.setText(f"Total: {format_duration(total, seconds=False)}")

    def delete_selected(self):
        rows = sorted({index.row() for index in self.history_table.selectedIndexes()}, reverse=True)
        ids = [self.history_entries[row].id for row in rows]
        for row in rows:
            self.history_table.removeRow(row)
            del self.history_entries[row]
        self.client.delete_entries(self.user, ids)

    # Bus times
    def _build_bus_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.next_bus_label = QLabel()
        layout.addWidget(self.next_bus_label)

        add_row = QHBoxLayout()
        self.new_time_input = QLineEdit()
        self.new_time_input.setPlaceholderText('HH:MM')
        self.new_time_input.setMaxLength(5)
        add_button = QPushButton('Add')
        add_button.clicked.connect(self.add_bus_time)
        add_row.addWidget(self.new_time_input)
        add_row.addWidget(add_button)
        layout.addLayout(add_row)

        self.bus_table = QTableWidget(0, 1)
        self.bus_table.setHorizontalHeaderLabels(['Time'])
        self.bus_table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        layout.addWidget(self.bus_table)

        buttons = QHBoxLayout()
        edit_button = QPushButton('Edit')
        edit_button.clicked.connect(self.edit_bus_time)
        delete_button = QPushButton('Delete')
        delete_button.clicked.connect(self.delete_bus_time)
        buttons.addWidget(edit_button)
        buttons.addWidget(delete_button)
        layout.addLayout(buttons)
        return widget

    def load_bus_times(self):
        self.bus_times = self.client.bus_times(self.user)
        self.bus_table.setRowCount(len(self.bus_times))
        for row, bus in enumerate(self.bus_times):
            self.bus_table.setItem(row, 0, QTableWidgetItem(bus.time))

        next_bus = next_bus_from(datetime.now(), sorted_times(self.bus_times))
        self.next_bus_label.setText(f"Next bus: {next_bus}" if next_bus else 'No suitable bus')

    def _selected_bus(self):
        rows = {index.row() for index in self.bus_table.selectedIndexes()}
        return self.bus_times[rows.pop()] if rows else None

    def _bus_action(self, action, *args):
        try:
            action(self.user, *args)
        except InvalidTimeFormat as e:
            QMessageBox.warning(self, 'Invalid time', str(e))
            return
        except RepositoryError as e:
            QMessageBox.warning(self, 'Bus times', f'Could not complete this action: {e}')
            return
        self.load_bus_times()

    def add_bus_time(self):
        self._bus_action(self.client.bus_service.add_time, self.new_time_input.text())
        self.new_time_input.clear()

    def edit_bus_time(self):
        bus = self._selected_bus()
        if bus is None:
            return
        value, ok = QInputDialog.getText(self, 'Edit bus time', 'HH:MM', text=bus.time)
        if ok:
            self._bus_action(self.client.bus_service.edit_time, bus.id, value)

    def delete_bus_time(self):
        bus = self._selected_bus()
        if bus is not None:
            self._bus_action(self.client.bus_service.delete_time, bus.id)

    def _on_tab_changed(self, index: int):
        if index == 1:
            self.load_history()
        elif index == 2:
            self.load_bus_times()

    def closeEvent(self, event):
        self._stop_ticker()
        event.accept()


def main():
    app = QApplication(sys.argv)
    window = ShiftTrackClientApp()
    window.show()
    sys.exit(app.exec())


if __name__ == '__main__':
    main()
