"""CloudWatch log tailing for SageMaker jobs.

Training, processing and transform jobs write one log stream per
instance into ``/aws/sagemaker/<Kind>Jobs``. :class:`JobLogTailer` polls
those streams, prints their events interleaved by timestamp, and keeps
polling the job description until the job reaches a terminal state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum
import logging
import sys
import time
from typing import TYPE_CHECKING, Any, NamedTuple

from botocore.exceptions import ClientError

from .utils import secondary_training_status_changed, secondary_training_status_message

if TYPE_CHECKING:
    from mypy_boto3_logs import CloudWatchLogsClient

    from .session import Session

logger = logging.getLogger(__name__)

TERMINAL_JOB_STATUSES = ("Completed", "Failed", "Stopped")

# Seconds between DescribeXxxJob calls while tailing
DESCRIBE_INTERVAL_SECONDS = 30


class LogState(IntEnum):
    """States of the log tailing loop."""

    STARTING = 1
    WAIT_IN_PROGRESS = 2
    TAILING = 3
    JOB_COMPLETE = 4
    COMPLETE = 5


class Position(NamedTuple):
    """Read position within a log stream."""

    timestamp: int
    skip: int


def log_stream(
    client: CloudWatchLogsClient,
    log_group: str,
    stream_name: str,
    start_time: int = 0,
    skip: int = 0,
) -> Iterator[dict[str, Any]]:
    """Iterate over the events of a single log stream.

    Pages through ``GetLogEvents`` until an empty page is returned.

    Args:
        client: CloudWatch Logs client.
        log_group: Log group name.
        stream_name: Log stream name.
        start_time: Millisecond timestamp to start reading from.
        skip: Number of events at ``start_time`` already consumed.

    Yields:
        Log event dicts with ``timestamp`` and ``message`` keys.
    """
    next_token = None
    event_count = 1

    while event_count > 0:
        token_args = {"nextToken": next_token} if next_token else {}
        response = client.get_log_events(
            logGroupName=log_group,
            logStreamName=stream_name,
            startTime=start_time,
            startFromHead=True,
            **token_args,
        )
        next_token = response.get("nextForwardToken")
        events = response.get("events", [])
        event_count = len(events)

        if event_count > skip:
            events = events[skip:]
            skip = 0
        else:
            skip -= event_count
            events = []

        yield from events


def multi_stream_iter(
    client: CloudWatchLogsClient,
    log_group: str,
    streams: list[str],
    positions: dict[str, Position],
) -> Iterator[tuple[int, dict[str, Any]]]:
    """Iterate over the events of several log streams, merged by timestamp.

    Yields:
        ``(stream_index, event)`` tuples.
    """
    iterators = [
        log_stream(client, log_group, name, positions[name].timestamp, positions[name].skip)
        for name in streams
    ]
    events: list[dict[str, Any] | None] = [next(it, None) for it in iterators]

    while any(e is not None for e in events):
        index = min(
            (i for i, e in enumerate(events) if e is not None),
            key=lambda i: events[i]["timestamp"],  # type: ignore[index]
        )
        event = events[index]
        assert event is not None
        yield index, event
        events[index] = next(iterators[index], None)


class ColorWrap:
    """Prints log lines, colored per stream when attached to a terminal."""

    _stream_colors = [31, 32, 33, 34, 35, 36]

    def __init__(self, force: bool = False) -> None:
        self.colorize = force or sys.stdout.isatty()

    def __call__(self, index: int, s: str) -> None:
        if self.colorize:
            color = self._stream_colors[index % len(self._stream_colors)]
            print(f"\x1b[{color}m{s}\x1b[0m")
        else:
            print(s)


def initial_job_state(description: dict[str, Any], status_key: str, wait: bool) -> LogState:
    """Pick the first log state from a job description."""
    status = description.get(status_key)
    job_already_completed = status in TERMINAL_JOB_STATUSES
    return LogState.TAILING if wait and not job_already_completed else LogState.COMPLETE


@dataclass
class JobLogTailer:
    """Streams the CloudWatch logs of one SageMaker job.

    Attributes:
        client: CloudWatch Logs client.
        job_name: Job name (log streams are prefixed ``{job_name}/``).
        log_group: Log group, e.g. ``/aws/sagemaker/TrainingJobs``.
        instance_count: Number of streams to expect.
        describe: Callable returning the current job description.
        status_key: Status field in the description, e.g. ``TrainingJobStatus``.
        print_secondary_status: Whether to echo training secondary status transitions.
    """

    client: CloudWatchLogsClient
    job_name: str
    log_group: str
    instance_count: int
    describe: Callable[[], dict[str, Any]]
    status_key: str
    print_secondary_status: bool = False
    color_wrap: ColorWrap = field(default_factory=ColorWrap)
    stream_names: list[str] = field(default_factory=list)
    positions: dict[str, Position] = field(default_factory=dict)
    dot: bool = False

    def tail(self, description: dict[str, Any], wait: bool = False, poll: float = 10) -> dict[str, Any]:
        """Print logs until the job finishes (or once, if not waiting).

        Args:
            description: Job description obtained before tailing started.
            wait: Whether to keep tailing until the job completes.
            poll: Seconds between log polls.

        Returns:
            The last job description seen.
        """
        if self.print_secondary_status:
            print(secondary_training_status_message(description, None), end="")

        state = initial_job_state(description, self.status_key, wait)
        last_describe_call = time.time()
        last_description = description

        while True:
            self.flush()
            if state == LogState.COMPLETE:
                break

            time.sleep(poll)

            if state == LogState.JOB_COMPLETE:
                state = LogState.COMPLETE
            elif time.time() - last_describe_call >= DESCRIBE_INTERVAL_SECONDS:
                description = self.describe()
                last_describe_call = time.time()

                if self.print_secondary_status and secondary_training_status_changed(
                    description, last_description
                ):
                    print()
                    print(secondary_training_status_message(description, last_description), end="")
                    last_description = description

                if description.get(self.status_key) in TERMINAL_JOB_STATUSES:
                    print()
                    state = LogState.JOB_COMPLETE

        if self.dot:
            print()
        return description

    def flush(self) -> None:
        """Discover new streams and print any events not yet printed."""
        if len(self.stream_names) < self.instance_count:
            self._discover_streams()

        if not self.stream_names:
            self.dot = True
            print(".", end="")
            sys.stdout.flush()
            return

        if self.dot:
            print()
            self.dot = False

        for index, event in multi_stream_iter(
            self.client, self.log_group, self.stream_names, self.positions
        ):
            self.color_wrap(index, event["message"])
            name = self.stream_names[index]
            timestamp, skip = self.positions[name]
            if event["timestamp"] == timestamp:
                self.positions[name] = Position(timestamp=timestamp, skip=skip + 1)
            else:
                self.positions[name] = Position(timestamp=event["timestamp"], skip=1)

    def _discover_streams(self) -> None:
        kwargs: dict[str, Any] = {
            "logGroupName": self.log_group,
            "logStreamNamePrefix": f"{self.job_name}/",
            "orderBy": "LogStreamName",
            "limit": min(self.instance_count, 50),
        }
        try:
            names: list[str] = []
            while True:
                response = self.client.describe_log_streams(**kwargs)
                names.extend(s["logStreamName"] for s in response.get("logStreams", []))
                if not response.get("nextToken"):
                    break
                kwargs["nextToken"] = response["nextToken"]
        except ClientError as e:
            # No log group exists until the first container starts logging
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code != "ResourceNotFoundException":
                raise
            return

        self.stream_names = names
        for name in names:
            self.positions.setdefault(name, Position(timestamp=0, skip=0))


def tail_job_logs(
    session: Session,
    job_name: str,
    description_fn: Callable[[], dict[str, Any]],
    status_key: str,
    log_group: str,
    instance_count_fn: Callable[[dict[str, Any]], int],
    wait: bool = False,
    poll: float = 10,
    print_secondary_status: bool = False,
) -> dict[str, Any]:
    """Display the logs of a job, optionally tailing until it completes.

    Args:
        session: Session providing the CloudWatch Logs client.
        job_name: Job name.
        description_fn: Callable returning the current job description.
        status_key: Status field in the description.
        log_group: Log group of the job kind.
        instance_count_fn: Extracts the instance count from a description.
        wait: Whether to keep tailing until the job completes.
        poll: Seconds between log polls.
        print_secondary_status: Whether to echo secondary status transitions.

    Returns:
        The last job description seen.

    Raises:
        UnexpectedStatusError: If waiting and the job fails.
    """
    description = description_fn()
    tailer = JobLogTailer(
        client=session.logs_client(),
        job_name=job_name,
        log_group=log_group,
        instance_count=instance_count_fn(description),
        describe=description_fn,
        status_key=status_key,
        print_secondary_status=print_secondary_status,
    )
    description = tailer.tail(description, wait=wait, poll=poll)

    if wait:
        session._check_job_status(job_name, description, status_key)
    return description
