"""Unit tests for the filesystem monitor."""

import asyncio
import threading
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from watch_rebuild.models import ChangeKind, MonitoringError
from watch_rebuild.monitoring import FileSystemMonitor
from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)


async def next_event(monitor, timeout=1.0):
    """Read the next event from the monitor stream."""
    return await asyncio.wait_for(anext(monitor.events()), timeout)


class TestFileSystemMonitor:
    """Test cases for FileSystemMonitor."""

    @pytest.fixture
    def mock_observer(self):
        """Patch the watchdog observer so no OS watch is created."""
        with patch('watch_rebuild.monitoring.file_watcher.Observer') as mock_observer_class:
            observer = Mock()
            observer.is_alive.return_value = True
            mock_observer_class.return_value = observer
            yield observer

    @pytest.fixture
    def site_dir(self, tmp_path):
        site = tmp_path / "site"
        site.mkdir()
        return site

    @pytest.fixture
    def monitor(self):
        return FileSystemMonitor(join_timeout=5.0)

    def test_initialization(self, monitor):
        """Test monitor initialization."""
        assert monitor.root is None
        assert not monitor.is_watching
        assert not monitor.is_paused
        assert monitor.get_suppressed_count() == 0

    def test_start_nonexistent_directory(self, monitor):
        """Test starting on a directory that does not exist."""
        with pytest.raises(MonitoringError) as exc_info:
            monitor.start(Path("/nonexistent/directory"))

        assert "Directory does not exist" in str(exc_info.value)
        assert not monitor.is_watching

    def test_start_file_not_directory(self, monitor, tmp_path):
        """Test starting on a file instead of a directory."""
        test_file = tmp_path / "index.md"
        test_file.write_text("# Home")

        with pytest.raises(MonitoringError) as exc_info:
            monitor.start(test_file)

        assert "Path is not a directory" in str(exc_info.value)

    def test_start_without_event_loop(self, monitor, site_dir, mock_observer):
        """Test that starting outside a running loop is rejected."""
        with pytest.raises(MonitoringError) as exc_info:
            monitor.start(site_dir)

        assert "running event loop" in str(exc_info.value)
        mock_observer.start.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_schedules_recursive_observer(self, monitor, site_dir, mock_observer):
        """Test the observer watches the resolved root recursively."""
        monitor.start(site_dir)

        mock_observer.schedule.assert_called_once_with(monitor, str(site_dir.resolve()), recursive=True)
        mock_observer.start.assert_called_once()
        assert monitor.root == site_dir.resolve()
        assert monitor.is_watching

        monitor.stop()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, monitor, site_dir, mock_observer):
        """Test the watch handle cannot be acquired twice."""
        monitor.start(site_dir)

        with pytest.raises(MonitoringError) as exc_info:
            monitor.start(site_dir)

        assert "already been started" in str(exc_info.value)
        monitor.stop()

    @pytest.mark.asyncio
    async def test_observer_failure_wrapped(self, monitor, site_dir, mock_observer):
        """Test observer start errors surface as MonitoringError."""
        mock_observer.start.side_effect = OSError("inotify watch limit reached")

        with pytest.raises(MonitoringError) as exc_info:
            monitor.start(site_dir)

        assert "inotify watch limit reached" in str(exc_info.value)
        assert isinstance(exc_info.value.cause, OSError)

    @pytest.mark.asyncio
    async def test_events_before_start(self, monitor):
        """Test the stream is unavailable before start."""
        with pytest.raises(MonitoringError):
            await anext(monitor.events())

    @pytest.mark.asyncio
    async def test_created_modified_deleted_events(self, monitor, site_dir, mock_observer):
        """Test each watchdog notification becomes one change event."""
        page = site_dir / "posts" / "hello.md"
        monitor.start(site_dir)

        monitor.on_created(FileCreatedEvent(str(page)))
        monitor.on_modified(FileModifiedEvent(str(page)))
        monitor.on_modified(FileModifiedEvent(str(page)))
        monitor.on_deleted(FileDeletedEvent(str(page)))

        kinds = [(await next_event(monitor)).kind for _ in range(4)]
        assert kinds == [ChangeKind.CREATED, ChangeKind.MODIFIED, ChangeKind.MODIFIED, ChangeKind.DELETED]

        monitor.stop()

    @pytest.mark.asyncio
    async def test_moved_event_becomes_rename(self, monitor, site_dir, mock_observer):
        """Test moves are reported as a single renamed event."""
        old_path = site_dir / "draft.md"
        new_path = site_dir / "published.md"
        monitor.start(site_dir)

        monitor.on_moved(FileMovedEvent(str(old_path), str(new_path)))

        event = await next_event(monitor)
        assert event.kind == ChangeKind.RENAMED
        assert event.path == new_path
        assert event.previous_path == old_path

        monitor.stop()

    @pytest.mark.asyncio
    async def test_directory_modified_not_reported(self, monitor, site_dir, mock_observer):
        """Test parent directory modifications are skipped but directory creation is not."""
        monitor.start(site_dir)

        monitor.on_modified(DirModifiedEvent(str(site_dir)))
        monitor.on_created(DirCreatedEvent(str(site_dir / "assets")))

        event = await next_event(monitor)
        assert event.kind == ChangeKind.CREATED
        assert event.is_directory is True
        assert event.path == site_dir / "assets"

        monitor.stop()

    @pytest.mark.asyncio
    async def test_paused_monitor_holds_back_events(self, monitor, site_dir, mock_observer):
        """Test events raised while paused are counted for resume, not queued."""
        monitor.start(site_dir)

        monitor.pause()
        assert monitor.is_paused
        monitor.on_created(FileCreatedEvent(str(site_dir / "draft.md")))
        monitor.on_modified(FileModifiedEvent(str(site_dir / "draft.md")))
        assert monitor.resume() == 2
        monitor.on_deleted(FileDeletedEvent(str(site_dir / "old.md")))

        event = await next_event(monitor)
        assert event.kind == ChangeKind.DELETED
        assert monitor.get_suppressed_count() == 2

        monitor.stop()

    @pytest.mark.asyncio
    async def test_excluded_directory_ignored(self, monitor, site_dir, mock_observer):
        """Test changes under an excluded directory never reach the stream."""
        root = site_dir.resolve()
        monitor.exclude(root / "public")
        monitor.start(site_dir)

        monitor.on_created(DirCreatedEvent(str(root / "public")))
        monitor.on_created(FileCreatedEvent(str(root / "public" / "index.html")))
        monitor.on_moved(FileMovedEvent(str(root / "public" / "a.tmp"), str(root / "public" / "a.html")))
        monitor.on_created(FileCreatedEvent(str(root / "publication.md")))

        event = await next_event(monitor)
        assert event.path == root / "publication.md"
        assert monitor.get_excluded_count() == 3
        assert monitor.excluded_paths == [root / "public"]

        monitor.stop()

    @pytest.mark.asyncio
    async def test_move_out_of_excluded_directory_reported(self, monitor, site_dir, mock_observer):
        """Test a rename is ignored only when both of its paths are excluded."""
        root = site_dir.resolve()
        monitor.exclude(root / "public")
        monitor.start(site_dir)

        monitor.on_moved(FileMovedEvent(str(root / "public" / "draft.md"), str(root / "draft.md")))

        event = await next_event(monitor)
        assert event.kind == ChangeKind.RENAMED
        assert event.path == root / "draft.md"

        monitor.stop()

    @pytest.mark.asyncio
    async def test_paused_excluded_events_not_held_back(self, monitor, site_dir, mock_observer):
        """Test pipeline output written while paused does not count as held back."""
        root = site_dir.resolve()
        monitor.exclude(root / "public")
        monitor.start(site_dir)

        monitor.pause()
        monitor.on_created(FileCreatedEvent(str(root / "public" / "index.html")))
        monitor.on_modified(FileModifiedEvent(str(root / "index.md")))

        assert monitor.resume() == 1
        assert monitor.get_suppressed_count() == 1

        monitor.stop()

    @pytest.mark.asyncio
    async def test_delivery_from_watchdog_threads(self, monitor, site_dir, mock_observer):
        """Test events delivered from several threads all reach the stream."""
        monitor.start(site_dir)

        def emit(index):
            for n in range(5):
                monitor.on_modified(FileModifiedEvent(str(site_dir / f"page-{index}-{n}.md")))

        threads = [threading.Thread(target=emit, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        paths = {(await next_event(monitor)).path for _ in range(20)}
        assert len(paths) == 20

        monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_releases_observer_once(self, monitor, site_dir, mock_observer):
        """Test stopping releases the observer exactly once."""
        monitor.start(site_dir)

        monitor.stop()
        monitor.stop()

        mock_observer.stop.assert_called_once()
        mock_observer.join.assert_called_once_with(timeout=5.0)
        assert not monitor.is_watching

    @pytest.mark.asyncio
    async def test_no_events_after_stop(self, monitor, site_dir, mock_observer):
        """Test nothing is yielded once stop has returned, even if already queued."""
        monitor.start(site_dir)
        monitor.on_created(FileCreatedEvent(str(site_dir / "late.md")))

        monitor.stop()
        monitor.on_created(FileCreatedEvent(str(site_dir / "later.md")))

        events = [event async for event in monitor.events()]
        assert events == []

    @pytest.mark.asyncio
    async def test_close_stream_wakes_blocked_reader(self, monitor, site_dir, mock_observer):
        """Test a reader blocked on the stream is released by close_stream."""
        monitor.start(site_dir)

        async def consume():
            return [event async for event in monitor.events()]

        reader = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        assert not reader.done()

        monitor.close_stream()

        assert await asyncio.wait_for(reader, 1.0) == []
        monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_error_wrapped(self, monitor, site_dir, mock_observer):
        """Test observer stop errors surface as MonitoringError."""
        monitor.start(site_dir)
        mock_observer.stop.side_effect = RuntimeError("Stop failed")

        with pytest.raises(MonitoringError) as exc_info:
            monitor.stop()

        assert "Failed to stop monitoring" in str(exc_info.value)
