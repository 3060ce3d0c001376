"""Stream a local file into a pod through ``tar -xf -`` over exec.

This is the kubectl cp protocol: a single-entry tar archive is written to
the exec session's stdin and unpacked by tar inside the container. The
archive is produced on a background thread into a bounded in-memory pipe so
that the file is never held in memory or written to disk in full.
"""

import logging
import os
import queue
import sys
import tarfile
import threading

from kubernetes.stream.ws_client import STDIN_CHANNEL, V5_CHANNEL_PROTOCOL

from . import crd
from .errors import DeadlineExceededError, StreamingError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
PIPE_DEPTH = 8
POLL_SECONDS = 0.5

_EOF = object()
_ABORT = object()


class _Pipe:
    """Bounded chunk queue with a file-like ``write`` for tarfile."""

    def __init__(self, depth=PIPE_DEPTH):
        self._queue = queue.Queue(maxsize=depth)
        self._closed = threading.Event()

    def write(self, data):
        if data:
            self._put(bytes(data))
        return len(data)

    def finish(self, ok):
        self._put(_EOF if ok else _ABORT)

    def get(self, timeout):
        return self._queue.get(timeout=timeout)

    def close(self):
        """Unblock the writer when the reader gives up."""
        self._closed.set()

    def _put(self, item):
        while True:
            if self._closed.is_set():
                raise StreamingError("exec session closed before the archive was fully written")
            try:
                self._queue.put(item, timeout=POLL_SECONDS)
                return
            except queue.Full:
                continue


class _CountingReader:
    def __init__(self, fileobj):
        self.fileobj = fileobj
        self.consumed = 0

    def read(self, size=-1):
        data = self.fileobj.read(size)
        self.consumed += len(data)
        return data


class _ArchiveWriter(threading.Thread):
    """Writes ``fileobj`` as a single tar entry into ``pipe``."""

    def __init__(self, pipe, fileobj, size, entry_name, mode):
        super().__init__(name="tar-writer", daemon=True)
        self.pipe = pipe
        self.reader = _CountingReader(fileobj)
        self.size = size
        self.entry_name = entry_name
        self.mode = mode
        self.error = None

    @property
    def written(self):
        return self.reader.consumed

    def run(self):
        try:
            self._write()
        except Exception as e:
            self.error = e
        try:
            self.pipe.finish(ok=self.error is None)
        except StreamingError:
            pass

    def _write(self):
        header = tarfile.TarInfo(name=self.entry_name)
        header.size = self.size
        header.mode = self.mode

        # The archive is only closed on success; a failed stream must not
        # end with a valid end-of-archive marker.
        tar = tarfile.open(fileobj=self.pipe, mode="w|", bufsize=CHUNK_SIZE)
        try:
            tar.addfile(header, fileobj=self.reader)
        except StreamingError:
            raise
        except Exception as e:
            if self.reader.consumed == 0:
                raise StreamingError(f"writing tar header: {e}") from e
            raise StreamingError(f"copying file to tar: {e}") from e
        tar.close()
        logger.info(f"Wrote {self.written} bytes to tar stream")


def _forward(session, stdout, stderr):
    if session.peek_stdout():
        stdout.write(session.read_stdout())
    if session.peek_stderr():
        stderr.write(session.read_stderr())


def _exit_code(session):
    try:
        return session.returncode
    except Exception as e:
        logger.debug(f"Could not read exec exit status: {e}")
        return None


def _close_stdin(session):
    """Signal end of input to the remote command.

    Only the v5 channel protocol can half-close stdin. On older protocols the
    whole session is closed instead and the exit status of tar is lost.
    Returns True when the session stays open to report the exit status.
    """
    if getattr(session, "subprotocol", None) == V5_CHANNEL_PROTOCOL:
        session.close_channel(STDIN_CHANNEL)
        return True
    logger.warning("Exec session cannot half-close stdin, closing it; tar exit status will be unknown")
    session.close()
    return False


def stream_fileobj(session, fileobj, size, entry_name=crd.IMAGE_FILE_NAME,
                   mode=crd.IMAGE_FILE_MODE, deadline=None, stdout=None, stderr=None):
    """Feed ``size`` bytes of ``fileobj`` into an open exec ``session`` as a tar entry.

    ``session`` follows the kubernetes.stream.ws_client.WSClient interface.
    Both the archive writer and the remote command must succeed.
    """
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    pipe = _Pipe()
    writer = _ArchiveWriter(pipe, fileobj, size, entry_name, mode)
    writer.start()

    try:
        while True:
            if deadline is not None:
                deadline.check("image stream")
            try:
                chunk = pipe.get(timeout=POLL_SECONDS)
            except queue.Empty:
                chunk = None

            if chunk is _ABORT:
                break
            if chunk is _EOF:
                logger.debug("Archive fully written, closing stdin")
                break

            session.update(timeout=0)
            _forward(session, stdout, stderr)
            if not session.is_open():
                raise StreamingError(
                    f"exec session closed early (exit code {_exit_code(session)})"
                )
            if chunk is not None:
                session.write_stdin(chunk)

        if chunk is _EOF and _close_stdin(session):
            while session.is_open():
                if deadline is not None:
                    deadline.check("image extraction")
                session.update(timeout=POLL_SECONDS)
                _forward(session, stdout, stderr)
            _forward(session, stdout, stderr)
    except (DeadlineExceededError, StreamingError):
        raise
    except Exception as e:
        raise StreamingError(f"streaming to pod: {e}") from e
    finally:
        pipe.close()
        session.close()
        writer.join()

    if writer.error is not None:
        if isinstance(writer.error, StreamingError):
            raise writer.error
        raise StreamingError(f"writing tar stream: {writer.error}") from writer.error

    code = _exit_code(session)
    if code not in (0, None):
        raise StreamingError(f"tar exited with code {code}")

    return writer.written


def push_file(open_session, namespace, pod_name, local_path, container=crd.SERVER_CONTAINER,
              dest_dir=crd.SERVER_ROOT, entry_name=crd.IMAGE_FILE_NAME, deadline=None,
              stdout=None, stderr=None):
    """Copy ``local_path`` into ``dest_dir/entry_name`` inside ``pod_name``.

    ``open_session(namespace, pod_name, container, command)`` must return an
    exec session; see ``k8s.open_exec_session``.
    """
    try:
        f = open(local_path, "rb")
    except OSError as e:
        raise StreamingError(f"opening local file: {e}") from e

    with f:
        try:
            size = os.fstat(f.fileno()).st_size
        except OSError as e:
            raise StreamingError(f"stat local file: {e}") from e

        logger.info(f"Image size: {size} bytes ({size / (1024 ** 3):.2f} GB)")

        command = ["tar", "-xf", "-", "-C", dest_dir]
        try:
            session = open_session(namespace, pod_name, container, command)
        except Exception as e:
            raise StreamingError(f"creating executor: {e}") from e

        return stream_fileobj(
            session,
            f,
            size,
            entry_name=entry_name,
            deadline=deadline,
            stdout=stdout,
            stderr=stderr,
        )
