"""
Lifecycle scheduler.

One tick evaluates every scheduled quiz against the lifecycle rules:
inactive quizzes whose window opened today are activated, active quizzes
whose window closed are ended, and stale in-progress attempts are
abandoned. The tick is triggered from outside (``start()`` runs a
background thread, ``flask quiz tick`` runs a single pass from cron).

A failing or slow quiz never stops the batch: each quiz is processed in
a worker bounded by ``quiz_timeout`` seconds, and errors are logged and
counted.
"""
import threading
from contextlib import nullcontext
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from flask import Flask, current_app, has_app_context

from quizhub import db
from quizhub.common.clock import Clock, system_clock
from quizhub.quiz import lifecycle
from quizhub.quiz.lifecycle import Transition
from quizhub.quiz.repository import QuizRepository
from quizhub.quiz.service import AttemptService


@dataclass
class TickReport:
    started_at: datetime
    activated: list = field(default_factory=list)
    ended: list = field(default_factory=list)
    failed: list = field(default_factory=list)
    abandoned: int = 0

    def as_dict(self) -> dict:
        return {
            'started_at': self.started_at.isoformat(),
            'activated': self.activated,
            'ended': self.ended,
            'failed': self.failed,
            'abandoned': self.abandoned,
        }


class SchedulerLoop:

    def __init__(self, app: Flask, clock: Clock = system_clock,
                 interval_seconds: Optional[int] = None,
                 quiz_timeout: Optional[float] = None,
                 quizzes: Optional[QuizRepository] = None):
        self.app = app
        self.clock = clock
        self.interval_seconds = interval_seconds or app.config['SCHEDULER_INTERVAL_SECONDS']
        # 0 or None processes quizzes inline without a time bound
        self.quiz_timeout = quiz_timeout if quiz_timeout is not None else app.config['SCHEDULER_QUIZ_TIMEOUT_SECONDS']
        self.quizzes = quizzes or QuizRepository()
        self._stop = threading.Event()
        self._thread = None
        self._executor = None

    # Driver

    def start(self) -> None:
        """Run ticks every ``interval_seconds`` in a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="quiz-scheduler", daemon=True)
        self._thread.start()
        self.app.logger.info(f"Quiz scheduler started (interval={self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def run_forever(self) -> None:
        """Blocking loop, used by ``flask quiz run-scheduler``."""
        self.app.logger.info(f"Quiz scheduler running in foreground (interval={self.interval_seconds}s)")
        self._run()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                # A broken tick (e.g. database down) must not kill the loop
                self.app.logger.exception(f"Quiz scheduler tick failed: {str(e)}")
            self._stop.wait(self.interval_seconds)

    # Tick

    def tick(self) -> TickReport:
        now = self.clock.now()
        report = TickReport(started_at=now)
        with self._context():
            self.app.logger.info(f"Running scheduled quiz checks at {now.isoformat()}")

            pending = [(q.id, q.title) for q in self.quizzes.list_scheduled(is_active=False)]
            self.app.logger.debug(f"Found {len(pending)} inactive quizzes with schedules")
            for quiz_id, title in pending:
                self._process(quiz_id, title, now, report)

            running = [(q.id, q.title) for q in self.quizzes.list_scheduled(is_active=True)]
            self.app.logger.debug(f"Found {len(running)} active quizzes with schedules")
            for quiz_id, title in running:
                self._process(quiz_id, title, now, report)

            try:
                report.abandoned = AttemptService(clock=self.clock).abandon_stale(now)
            except Exception as e:
                db.session.rollback()
                self.app.logger.exception(f"Error abandoning stale attempts: {str(e)}")

        self.app.logger.info(
            f"Scheduler tick done: activated={len(report.activated)}, ended={len(report.ended)}, "
            f"failed={len(report.failed)}, abandoned={report.abandoned}"
        )
        return report

    def _context(self):
        """Reuse the caller's app context (CLI, tests); push one from the driver thread."""
        if has_app_context() and current_app._get_current_object() is self.app:
            return nullcontext()
        return self.app.app_context()

    def _process(self, quiz_id: int, title: str, now: datetime, report: TickReport) -> None:
        try:
            if self.quiz_timeout:
                future = self._get_executor().submit(self._apply_in_context, quiz_id, now)
                transition = future.result(timeout=self.quiz_timeout)
            else:
                transition = self.apply_transition(quiz_id, now)
        except FutureTimeout:
            self.app.logger.error(f"Timed out processing quiz {quiz_id} ({title}) after {self.quiz_timeout}s")
            report.failed.append(quiz_id)
            self._discard_executor()
            return
        except Exception as e:
            db.session.rollback()
            self.app.logger.error(f"Error processing quiz {quiz_id} ({title}): {str(e)}")
            report.failed.append(quiz_id)
            return

        if transition == Transition.ACTIVATE:
            report.activated.append(quiz_id)
        elif transition == Transition.END:
            report.ended.append(quiz_id)

    def _apply_in_context(self, quiz_id: int, now: datetime) -> Optional[Transition]:
        with self.app.app_context():
            try:
                return self.apply_transition(quiz_id, now)
            except Exception:
                db.session.rollback()
                raise

    def apply_transition(self, quiz_id: int, now: datetime) -> Optional[Transition]:
        """
        Evaluate one quiz and persist its transition with a compare-and-set.

        Returns the transition that was applied, or None when nothing
        changed (no transition due, or a concurrent manual action won).
        """
        quiz = self.quizzes.get(quiz_id)
        if quiz is None:
            return None

        transition = lifecycle.evaluate(quiz, now)
        if transition is None:
            return None

        expected_active = transition == Transition.END
        changes = lifecycle.transition_changes(quiz, transition, now)
        if not self.quizzes.set_active_if(quiz.id, expected_active, changes):
            self.app.logger.info(f"Quiz {quiz.id} changed concurrently, skipping {transition.value}")
            return None

        verb = "Activated" if transition == Transition.ACTIVATE else "Deactivated"
        self.app.logger.info(f"{verb} quiz: {quiz.title} ({quiz.id}) at {now.isoformat()}")
        return transition

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="quiz-scheduler-worker")
        return self._executor

    def _discard_executor(self) -> None:
        # The timed-out worker may still be blocked; later quizzes get a fresh one
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
