# Copyright (c) 2020 by Phase Advanced Sensor Systems, Inc.
# All rights reserved.
import logging
import threading

from .errors import ApiException, ApiHttpException, ClientClosedException
from .options import WriteOptions


def is_retryable(e):
    if isinstance(e, ApiHttpException):
        return e.status_code == 429 or e.status_code >= 500
    return isinstance(e, ApiException)


def retry_after(e):
    '''
    Returns the Retry-After delay of an HTTP error in seconds, or None.
    '''
    if not isinstance(e, ApiHttpException):
        return None
    v = e.get_header('Retry-After')
    try:
        return float(v) if v is not None else None
    except ValueError:
        return None


class WriteQueue:
    '''
    Class to asynchronously write points to InfluxDB.  Writing points can
    take a nondeterministic length of time and by trying to write them
    synchronously you can introduce lots of jitter into your measurement
    loop.  This asynchronous queue allows the work to be performed in a
    separate thread so as not to disturb the measurement times.  Points are
    gathered for up to flush_interval seconds (or until batch_size of them
    are queued) and written per database.  Failed writes are retried with
    exponential backoff when the failure is transient: the server was
    unreachable, it was throttling (429) or it failed (5xx).  Any other
    failure is passed to error_cb and the points are dropped.
    '''
    def __init__(self, client, push_cb=None, error_cb=None,
                 flush_interval=1.0, batch_size=1000, retry_interval=5.0,
                 max_retry_interval=300.0, max_retries=None, log=None):
        self.client             = client
        self.push_cb            = push_cb
        self.error_cb           = error_cb
        self.flush_interval     = flush_interval
        self.batch_size         = batch_size
        self.retry_interval     = retry_interval
        self.max_retry_interval = max_retry_interval
        self.max_retries        = max_retries
        self.log                = log or logging.getLogger(__name__)

        self.queue_cond      = threading.Condition()
        self.queue           = {}
        self.cookie_queue    = {}
        self.writing         = False
        self.flush_requested = False
        self.stopping        = threading.Event()
        self.thread          = None
        self.running         = False
        self.start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def start(self):
        assert not self.thread
        self.stopping.clear()
        self.running = True
        self.thread  = threading.Thread(target=self._push_loop, daemon=True)
        self.thread.start()

    def _npoints(self):
        return sum(len(ps) for ps in self.queue.values())

    def append(self, p, database=None, cookie=None):
        '''
        Append a single point (or line-protocol string) to the queue.
        '''
        self.append_list([p], database, [cookie])

    def append_list(self, ps, database=None, cookies=None):
        '''
        Append a list of points to the queue.  Raises ClientClosedException
        once the queue has been closed.
        '''
        if cookies is None:
            cookies = [None] * len(ps)
        with self.queue_cond:
            if not self.running:
                raise ClientClosedException('WriteQueue has been closed.')
            self.queue.setdefault(database, []).extend(ps)
            self.cookie_queue.setdefault(database, []).extend(cookies)
            self.queue_cond.notify_all()

    def flush(self):
        '''
        Blocks until every queued point has been written or dropped.
        '''
        with self.queue_cond:
            if self.thread is None:
                return
            self.flush_requested = True
            self.queue_cond.notify_all()
            while self.queue or self.writing:
                self.queue_cond.wait()
            self.flush_requested = False

    def close(self):
        '''
        Flushes the queue and stops the writer thread.  Writes still being
        retried are abandoned.
        '''
        if self.thread is None:
            return
        with self.queue_cond:
            self.running = False
            self.queue_cond.notify_all()
        self.stopping.set()
        self.thread.join()
        self.thread = None

    def _gathered(self):
        return (self.flush_requested or not self.running or
                self._npoints() >= self.batch_size)

    def _push_loop(self):
        while True:
            with self.queue_cond:
                while not self.queue and self.running:
                    self.queue_cond.wait()
                if not self.queue:
                    return

                self.queue_cond.wait_for(self._gathered, self.flush_interval)

                queue             = self.queue
                cookies           = self.cookie_queue
                self.queue        = {}
                self.cookie_queue = {}
                self.writing      = True

            try:
                for database, points in queue.items():
                    for i in range(0, len(points), self.batch_size):
                        j = i + self.batch_size
                        self._write(database, points[i:j],
                                    cookies[database][i:j])
            finally:
                with self.queue_cond:
                    self.writing = False
                    self.queue_cond.notify_all()

    def _retry_delay(self, attempt, e):
        delay = retry_after(e)
        if delay is None:
            delay = self.retry_interval * (2 ** attempt)
        return min(delay, self.max_retry_interval)

    def _drop(self, database, points, e):
        self.log.error('Dropping %u points for %s: %s', len(points), database, e)
        if self.error_cb:
            self.error_cb(points, e)

    def _write(self, database, points, cookies):
        options = WriteOptions(database=database)
        attempt = 0
        while True:
            try:
                self.client.write_points(points, options)
                break
            except Exception as e:
                exhausted = (self.max_retries is not None and
                             attempt >= self.max_retries)
                if (not is_retryable(e) or exhausted or
                        self.stopping.is_set()):
                    self._drop(database, points, e)
                    return

                delay = self._retry_delay(attempt, e)
                attempt += 1
                self.log.warning('Write exception (attempt %u): %s; '
                                 'retrying in %.1f seconds...',
                                 attempt, e, delay)
                if self.stopping.wait(delay):
                    self._drop(database, points, e)
                    return

        if self.push_cb:
            for p, c in zip(points, cookies):
                self.push_cb(p, c)
