# reading.py
"""
阅读理解：导入文本解析、入库、答题评分

导入格式（三个部分按顺序出现，标记前后可以有空白）::

    阅读文本
    标题
    正文……
    选择题
    1. 题目 A. 选项 B. 选项 C. 选项
    2、题目 A、选项 B、选项 C、选项
    答案
    1. A
    2、C
"""
import logging
import re
from dataclasses import dataclass, field

from errors import NotFoundError, ValidationError
from models import READING_TEST_TYPE, ReadingPassage, ReadingQuestion
from services import atomic, percent

logger = logging.getLogger(__name__)

SECTION_MARKERS = ('阅读文本', '选择题', '答案')
VALID_ANSWERS = ('A', 'B', 'C')

SECTION_PATTERN = re.compile(r'\s*(阅读文本|选择题|答案)\s*')
QUESTION_PATTERN = re.compile(
    r'(\d+)[.、]\s*(.*?)\s*A[.、]\s*(.*?)\s*B[.、]\s*(.*?)\s*C[.、]\s*(.*?)(?=\d+[.、]|\Z)',
    re.S
)
ANSWER_PATTERN = re.compile(r'(\d+)\s*[.、]\s*([A-Za-z])')


@dataclass
class ParsedQuestion:
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    correct_answer: str = ''


@dataclass
class ParsedPassage:
    title: str
    content: str
    questions: list = field(default_factory=list)


def _split_sections(text):
    parts = SECTION_PATTERN.split(text)
    # split 带分组时结果是 [前缀, 标记1, 内容1, 标记2, 内容2, ...]
    markers = tuple(parts[1::2][:3])
    sections = [parts[0]] + parts[2::2]
    if len(sections) < 4 or markers != SECTION_MARKERS:
        raise ValidationError('格式错误：请确保包含阅读文本、选择题和答案三个部分')
    return sections[1].strip(), sections[2].strip(), sections[3].strip()


def _parse_passage(section):
    lines = section.split('\n')
    title = lines[0].strip()
    if not title:
        raise ValidationError('阅读文本部分格式错误：请确保第一行为有效的标题')
    content = '\n'.join(lines[1:]).strip()
    if not content:
        raise ValidationError('阅读文本部分格式错误：请确保标题后有正文内容')
    return title, content


def _parse_questions(section):
    questions = []
    for match in QUESTION_PATTERN.finditer(section):
        text, a, b, c = (g.strip() for g in match.group(2, 3, 4, 5))
        questions.append(ParsedQuestion(text, a, b, c))

    if not questions:
        raise ValidationError('选择题部分格式错误：没有找到有效的选择题，请检查题目编号和选项格式')

    for number, q in enumerate(questions, start=1):
        if not q.question_text:
            raise ValidationError(f'选择题部分格式错误：第{number}题题目内容不能为空')
        if not (q.option_a and q.option_b and q.option_c):
            raise ValidationError(f'选择题部分格式错误：第{number}题选项不完整，请确保包含A、B、C三个选项')
    return questions


def _parse_answers(section):
    answers = {}
    invalid = []
    for match in ANSWER_PATTERN.finditer(section):
        number = int(match.group(1))
        letter = match.group(2).upper()
        if letter not in VALID_ANSWERS:
            invalid.append(f'第{number}题答案不是有效的选项(A/B/C)')
        answers[number] = letter

    if not answers:
        raise ValidationError('答案部分格式错误：没有找到有效的答案，请检查答案格式（如：1. A）')
    if invalid:
        raise ValidationError('答案部分格式错误：' + '，'.join(invalid))
    return answers


def parse_reading_block(text):
    """把导入文本解析成 ParsedPassage，任何格式问题都抛 ValidationError"""
    if not isinstance(text, str) or not text.strip():
        raise ValidationError('内容不能为空')

    passage_section, question_section, answer_section = _split_sections(text)
    title, content = _parse_passage(passage_section)
    questions = _parse_questions(question_section)
    answers = _parse_answers(answer_section)

    if len(questions) != len(answers):
        raise ValidationError(
            f'格式错误：题目数量({len(questions)})和答案数量({len(answers)})不匹配')

    # 题目按出现顺序编号 1..N
    for number, question in enumerate(questions, start=1):
        if number not in answers:
            raise ValidationError(f'答案部分格式错误：缺少第{number}题的答案')
        question.correct_answer = answers[number]

    return ParsedPassage(title=title, content=content, questions=questions)


class ReadingService:
    """文章导入、读取和答题评分"""

    def __init__(self, session, results):
        self.session = session
        self.results = results

    def import_block(self, text):
        parsed = parse_reading_block(text)
        with atomic(self.session):
            passage = ReadingPassage(title=parsed.title, content=parsed.content)
            self.session.add(passage)
            # 先拿到文章 id 再写题目
            self.session.flush()
            for q in parsed.questions:
                self.session.add(ReadingQuestion(
                    passage_id=passage.id,
                    question_text=q.question_text,
                    option_a=q.option_a,
                    option_b=q.option_b,
                    option_c=q.option_c,
                    correct_answer=q.correct_answer
                ))
        logger.info("导入阅读文章《%s》，共 %d 道题", parsed.title, len(parsed.questions))
        return {'success_count': 1, 'total_questions': len(parsed.questions)}

    def list_passages(self):
        return (self.session.query(ReadingPassage)
                .order_by(ReadingPassage.added_date.desc(), ReadingPassage.id.desc())
                .all())

    def _get(self, passage_id):
        passage = self.session.get(ReadingPassage, passage_id)
        if passage is None:
            raise NotFoundError('找不到指定的文章')
        return passage

    def get_passage(self, passage_id):
        """
        读取文章和题目，同时曝光度 +1。
        返回 (文章, 题目列表) 两个字典，曝光度是本次阅读之前的值。
        """
        with atomic(self.session):
            passage = self._get(passage_id)
            data = passage.to_dict()
            questions = [q.to_dict() for q in passage.questions]
            passage.exposure = ReadingPassage.exposure + 1
        return data, questions

    def delete_passage(self, passage_id):
        with atomic(self.session):
            self.session.delete(self._get(passage_id))

    def submit_answers(self, passage_id, answers):
        if passage_id in (None, '') or answers is None:
            raise ValidationError('缺少必要的参数')
        if not isinstance(answers, dict):
            raise ValidationError('answers 必须是 题目id -> 选项 的映射')
        try:
            passage_id = int(passage_id)
        except (TypeError, ValueError):
            raise ValidationError('passageId 必须是整数')

        with atomic(self.session):
            passage = self._get(passage_id)
            if not passage.questions:
                raise ValidationError('该文章没有题目')

            results = []
            correct_count = 0
            for q in passage.questions:
                user_answer = answers.get(str(q.id), answers.get(q.id))
                is_correct = (isinstance(user_answer, str)
                              and user_answer.strip().upper() == q.correct_answer.upper())
                if is_correct:
                    correct_count += 1
                results.append({
                    'questionId': q.id,
                    'userAnswer': user_answer,
                    'correctAnswer': q.correct_answer,
                    'isCorrect': is_correct
                })

            total = len(passage.questions)
            score = percent(correct_count, total)
            self.results.record(score, total, correct_count, total - correct_count,
                                type=READING_TEST_TYPE)

        return {
            'success': True,
            'score': score,
            'correctCount': correct_count,
            'totalQuestions': total,
            'results': results
        }
