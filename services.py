# services.py
"""
词库核心逻辑：单词库、错词本状态机、随机出题、测试结果记录

每个服务只依赖传入的 session，不直接读取全局 app。
多步操作都包在 atomic() 里，出错整体回滚。
"""
import logging
import math
import random
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from errors import ConflictError, NotFoundError, StorageError, ValidationError
from models import DEFAULT_TEST_TYPE, Mistake, TestResult, Word

logger = logging.getLogger(__name__)

_ATOMIC_DEPTH = 'vocab_atomic_depth'


@contextmanager
def atomic(session, conflict_message=None):
    """事务边界：只有最外层负责 commit / rollback，嵌套调用直接复用外层事务"""
    depth = session.info.get(_ATOMIC_DEPTH, 0)
    session.info[_ATOMIC_DEPTH] = depth + 1
    outermost = depth == 0
    try:
        yield session
        if outermost:
            session.commit()
    except IntegrityError as exc:
        if outermost:
            session.rollback()
        if conflict_message:
            raise ConflictError(conflict_message) from exc
        logger.exception("事务提交失败（约束冲突）")
        raise StorageError('Database constraint violated') from exc
    except SQLAlchemyError as exc:
        if outermost:
            session.rollback()
        logger.exception("事务提交失败")
        raise StorageError('Database operation failed') from exc
    except Exception:
        if outermost:
            session.rollback()
        raise
    finally:
        session.info[_ATOMIC_DEPTH] = depth


def percent(part, total):
    """四舍五入的百分比，total 为 0 时返回 0"""
    if not total:
        return 0
    return int(math.floor(part * 100 / total + 0.5))


def _clean_text(value):
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError('Fields must be strings')
    return value.strip()


def _clean_word_fields(english, chinese, example=None):
    english = _clean_text(english)
    chinese = _clean_text(chinese)
    if not english or not chinese:
        raise ValidationError('English and Chinese are required')
    example = _clean_text(example) or None
    return english, chinese, example


def _escape_like(text):
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _as_count(value, name='count'):
    # True/87.5 不能悄悄变成 1/87
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{name} must be an integer')
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')
    if count < 0:
        raise ValidationError(f'{name} must not be negative')
    return count


class WordStore:
    """单词的增删改查和学习计数"""

    def __init__(self, session, familiar_threshold=3):
        self.session = session
        self.familiar_threshold = familiar_threshold

    def _query(self):
        return self.session.query(Word)

    def get(self, word_id):
        word = self.session.get(Word, word_id)
        if word is None:
            raise NotFoundError('Word not found')
        return word

    def get_by_english(self, english):
        english = _clean_text(english)
        if not english:
            return None
        return self._query().filter(func.lower(Word.english) == english.lower()).first()

    def list_all(self):
        return self._query().order_by(Word.added_date.desc(), Word.id.desc()).all()

    def count(self):
        return self.session.query(func.count(Word.id)).scalar()

    def search(self, text):
        text = _clean_text(text).lower()
        if not text:
            return []
        pattern = '%' + _escape_like(text) + '%'
        return self._query().filter(or_(
            func.lower(Word.english).like(pattern, escape='\\'),
            func.lower(Word.chinese).like(pattern, escape='\\'),
            func.lower(Word.example).like(pattern, escape='\\'),
        )).order_by(Word.id).all()

    def create(self, english, chinese, example=None):
        english, chinese, example = _clean_word_fields(english, chinese, example)
        with atomic(self.session, conflict_message='Word already exists'):
            existing = self.get_by_english(english)
            if existing is not None:
                raise ConflictError('Word already exists',
                                    extra={'existingWord': existing.to_dict()})
            word = Word(english=english, chinese=chinese, example=example)
            self.session.add(word)
        logger.info("新增单词 %s (id=%s)", word.english, word.id)
        return word

    def update(self, word_id, english, chinese, example=None):
        english, chinese, example = _clean_word_fields(english, chinese, example)
        with atomic(self.session, conflict_message='Word already exists'):
            word = self.get(word_id)
            clash = self._query().filter(
                func.lower(Word.english) == english.lower(), Word.id != word_id
            ).first()
            if clash is not None:
                raise ConflictError('Word already exists',
                                    extra={'existingWord': clash.to_dict()})
            word.english = english
            word.chinese = chinese
            word.example = example
        return word

    def delete(self, word_id):
        with atomic(self.session):
            # ORM 级联会一并删除错词记录
            self.session.delete(self.get(word_id))

    def delete_many(self, ids):
        if not ids:
            raise ValidationError('No valid IDs provided')
        with atomic(self.session):
            words = self._query().filter(Word.id.in_(ids)).all()
            for word in words:
                self.session.delete(word)
        return len(words)

    def clear(self):
        with atomic(self.session):
            self.session.query(Mistake).delete(synchronize_session=False)
            removed = self._query().delete(synchronize_session=False)
        return removed

    def update_stats(self, word_id, is_correct):
        """曝光度每次 +1；答对时熟悉度 +1，答错不扣熟悉度"""
        with atomic(self.session):
            word = self.get(word_id)
            word.exposure = Word.exposure + 1
            if is_correct:
                word.familiarity = Word.familiarity + 1
        return word

    def stats(self):
        total = self.count()
        tested = self.session.query(func.count(Word.id)).filter(Word.exposure > 0).scalar()
        familiar = self.session.query(func.count(Word.id)).filter(
            Word.familiarity >= self.familiar_threshold
        ).scalar()
        return {
            'total_words_count': total,
            'tested_words_count': tested,
            'familiar_words_count': familiar,
            'exposure_rate': percent(tested, total),
            'familiarity_rate': percent(familiar, total)
        }

    def create_batch(self, rows):
        """逐条校验、查重；合格的单词在同一个事务里提交"""
        if not isinstance(rows, list):
            raise ValidationError('Request body must be an array of words')

        results = BatchResult()
        pending = []
        seen = {}
        try:
            with atomic(self.session):
                for index, row in enumerate(rows):
                    if not isinstance(row, dict):
                        results.error.append({'index': index, 'word': row, 'reason': 'Invalid word entry'})
                        continue
                    try:
                        english, chinese, example = _clean_word_fields(
                            row.get('english'), row.get('chinese'), row.get('example'))
                    except ValidationError as exc:
                        results.error.append({'index': index, 'word': row, 'reason': exc.message})
                        continue

                    key = english.lower()
                    if key in seen:
                        results.duplicate.append({'index': index, 'word': row, 'existingWord': seen[key]})
                        continue
                    existing = self.get_by_english(english)
                    if existing is not None:
                        results.duplicate.append({'index': index, 'word': row, 'existingWord': existing.to_dict()})
                        continue

                    word = Word(english=english, chinese=chinese, example=example)
                    self.session.add(word)
                    entry = {'english': english, 'chinese': chinese, 'example': example}
                    seen[key] = entry
                    pending.append((word, entry))

                self.session.flush()
                for word, entry in pending:
                    entry['id'] = word.id
                    results.success.append(entry)
        except StorageError as exc:
            raise StorageError('Transaction failed', details=results.to_dict()) from exc

        logger.info("批量导入单词: 成功 %d, 重复 %d, 失败 %d",
                    len(results.success), len(results.duplicate), len(results.error))
        return results


class BatchResult:
    """批量导入的结果汇总"""

    def __init__(self):
        self.success = []
        self.duplicate = []
        self.error = []

    def to_dict(self):
        return {
            'success': list(self.success),
            'duplicate': list(self.duplicate),
            'error': list(self.error)
        }


class MistakeTracker:
    """
    错词本状态机（连续答对策略）

    - 正常 --答错--> 进入错词本，mistake_count=1，correct_streak=0
    - 错词 --答错--> mistake_count+1，correct_streak 清零
    - 错词 --答对--> correct_streak+1，达到阈值后移出错词本
    """

    def __init__(self, session, promotion_threshold=2):
        self.session = session
        self.promotion_threshold = promotion_threshold

    def find(self, word_id):
        return self.session.query(Mistake).filter_by(word_id=word_id).first()

    def list_all(self):
        return (self.session.query(Mistake)
                .options(joinedload(Mistake.word))
                .order_by(Mistake.added_date.desc(), Mistake.id.desc())
                .all())

    def record_wrong(self, word_id):
        with atomic(self.session, conflict_message='Mistake already exists'):
            if self.session.get(Word, word_id) is None:
                raise NotFoundError('Word not found')
            mistake = self.find(word_id)
            if mistake is None:
                mistake = Mistake(word_id=word_id, mistake_count=1, correct_streak=0)
                self.session.add(mistake)
                logger.info("单词 %s 进入错词本", word_id)
            else:
                mistake.mistake_count = mistake.mistake_count + 1
                mistake.correct_streak = 0
        return mistake

    def record_correct(self, word_id):
        """返回更新后的错词记录；移出错词本时返回 None"""
        with atomic(self.session):
            mistake = self.find(word_id)
            if mistake is None:
                raise NotFoundError('Mistake not found')
            streak = mistake.correct_streak + 1
            if streak >= self.promotion_threshold:
                self.session.delete(mistake)
                mistake = None
            else:
                mistake.correct_streak = streak
        if mistake is None:
            logger.info("单词 %s 连续答对 %d 次，移出错词本", word_id, self.promotion_threshold)
        return mistake

    def delete(self, mistake_id):
        with atomic(self.session):
            mistake = self.session.get(Mistake, mistake_id)
            if mistake is None:
                raise NotFoundError('Mistake not found')
            self.session.delete(mistake)

    def clear(self):
        with atomic(self.session):
            removed = self.session.query(Mistake).delete(synchronize_session=False)
        return removed


class QuizGenerator:
    """随机抽词和干扰项，每次调用相互独立"""

    def __init__(self, session, rng=None):
        self.session = session
        self.rng = rng or random.Random()

    def _pick(self, ids, n):
        picked = self.rng.sample(ids, min(n, len(ids)))
        if not picked:
            return []
        words = {w.id: w for w in self.session.query(Word).filter(Word.id.in_(picked))}
        return [words[i] for i in picked]

    def random_words(self, n):
        n = _as_count(n)
        ids = [row[0] for row in self.session.query(Word.id).order_by(Word.id)]
        return self._pick(ids, n)

    def distractors(self, word_id, n, as_records=False):
        n = _as_count(n)
        ids = [row[0] for row in
               self.session.query(Word.id).filter(Word.id != word_id).order_by(Word.id)]
        words = self._pick(ids, n)
        if as_records:
            return words
        return [w.chinese for w in words]


class ResultRecorder:
    """测试结果只追加，不修改"""

    def __init__(self, session, activity_days=100):
        self.session = session
        self.activity_days = activity_days

    def record(self, score, total, correct, incorrect, type=None):
        if any(v is None for v in (score, total, correct, incorrect)):
            raise ValidationError('All test result fields are required')
        result = TestResult(
            score=_as_count(score, 'score'),
            total_items=_as_count(total, 'total_items'),
            correct_count=_as_count(correct, 'correct_count'),
            incorrect_count=_as_count(incorrect, 'incorrect_count'),
            type=type or DEFAULT_TEST_TYPE
        )
        with atomic(self.session):
            self.session.add(result)
        return result

    def list_all(self):
        return (self.session.query(TestResult)
                .order_by(TestResult.test_date.desc(), TestResult.id.desc())
                .all())

    def delete(self, result_id):
        with atomic(self.session):
            result = self.session.get(TestResult, result_id)
            if result is None:
                raise NotFoundError('Test result not found')
            self.session.delete(result)

    def clear(self):
        with atomic(self.session):
            removed = self.session.query(TestResult).delete(synchronize_session=False)
        return removed

    def activity(self, days=None):
        """最近 days 天每天的测试次数；没有测试的日期不出现在结果里"""
        days = self.activity_days if days is None else _as_count(days, 'days')
        cutoff = datetime.combine(date.today() - timedelta(days=days), time.min)
        day = func.date(TestResult.test_date)
        rows = (self.session.query(day.label('date'), func.count(TestResult.id))
                .filter(TestResult.test_date >= cutoff)
                .group_by(day)
                .order_by(day)
                .all())
        return [{'date': _format_day(d), 'count': c} for d, c in rows]


def _format_day(value):
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
