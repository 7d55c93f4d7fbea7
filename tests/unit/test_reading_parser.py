"""
阅读理解导入文本解析的单元测试（不访问数据库）
"""
import allure
import pytest

from errors import ValidationError
from reading import parse_reading_block

pytestmark = pytest.mark.unit

PARSER_FEATURE = "阅读导入解析"


def _block(passage="Title\nBody", questions="1. Q1? A. a B. b C. c", answers="1. A"):
    return f"阅读文本\n{passage}\n选择题\n{questions}\n答案\n{answers}"


@allure.epic("单元测试")
@allure.feature(PARSER_FEATURE)
class TestParseHappyPath:

    @allure.title("最小导入文本")
    def test_minimal_block(self):
        parsed = parse_reading_block("阅读文本\nTitle\nBody\n选择题\n1. Q1? A. a B. b C. c\n答案\n1. A")

        assert parsed.title == "Title"
        assert parsed.content == "Body"
        assert len(parsed.questions) == 1
        q = parsed.questions[0]
        assert (q.question_text, q.option_a, q.option_b, q.option_c) == ("Q1?", "a", "b", "c")
        assert q.correct_answer == "A"

    @allure.title("多题、顿号分隔、选项跨行")
    def test_multiple_questions_mixed_separators(self, sample_block):
        parsed = parse_reading_block(sample_block)

        assert parsed.title == "My Cat"
        assert parsed.content.startswith("Tom has a small cat.")
        assert "every afternoon" in parsed.content
        assert [q.question_text for q in parsed.questions] == [
            "What does the cat like?", "Where does the cat sleep?"]
        assert parsed.questions[1].option_b == "on the sofa"
        assert parsed.questions[1].option_c == "in the box"
        assert [q.correct_answer for q in parsed.questions] == ["A", "B"]

    @allure.title("标记前后的空白和多余前缀被忽略")
    def test_whitespace_around_markers(self):
        text = "  说明文字\n  阅读文本  \n  Title  \n Body line \n\n 选择题 \n1.Q? A.x B.y C.z\n 答案 \n 1 . C \n"
        parsed = parse_reading_block(text)

        assert parsed.title == "Title"
        assert parsed.content == "Body line"
        assert parsed.questions[0].correct_answer == "C"

    @allure.title("小写答案按大写处理")
    def test_lowercase_answer_is_normalised(self):
        parsed = parse_reading_block(_block(answers="1. b"))
        assert parsed.questions[0].correct_answer == "B"

    @allure.title("正文保留多行")
    def test_body_keeps_line_breaks(self):
        parsed = parse_reading_block(_block(passage="Title\nline one\nline two"))
        assert parsed.content == "line one\nline two"


@allure.epic("单元测试")
@allure.feature(PARSER_FEATURE)
class TestParseErrors:

    @allure.title("空内容")
    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_content(self, text):
        with pytest.raises(ValidationError, match="内容不能为空"):
            parse_reading_block(text)

    @allure.title("缺少分段标记")
    def test_missing_marker(self):
        with pytest.raises(ValidationError, match="三个部分"):
            parse_reading_block("阅读文本\nTitle\nBody\n选择题\n1. Q? A. a B. b C. c")

    @allure.title("分段标记顺序错误")
    def test_markers_out_of_order(self):
        text = "选择题\n1. Q? A. a B. b C. c\n阅读文本\nTitle\nBody\n答案\n1. A"
        with pytest.raises(ValidationError, match="三个部分"):
            parse_reading_block(text)

    @allure.title("标题为空")
    def test_blank_title(self):
        with pytest.raises(ValidationError, match="标题"):
            parse_reading_block(_block(passage=""))

    @allure.title("正文为空")
    def test_blank_body(self):
        with pytest.raises(ValidationError, match="正文"):
            parse_reading_block(_block(passage="Only a title"))

    @allure.title("没有匹配到题目")
    def test_no_questions(self):
        with pytest.raises(ValidationError, match="没有找到有效的选择题"):
            parse_reading_block(_block(questions="no numbered questions here"))

    @allure.title("题目内容为空")
    def test_empty_question_text(self):
        with pytest.raises(ValidationError, match="第1题题目内容不能为空"):
            parse_reading_block(_block(questions="1. A. a B. b C. c"))

    @allure.title("选项为空")
    def test_empty_option(self):
        with pytest.raises(ValidationError, match="第1题选项不完整"):
            parse_reading_block(_block(questions="1. Q? A. a B. C. c"))

    @allure.title("没有答案")
    def test_no_answers(self):
        with pytest.raises(ValidationError, match="没有找到有效的答案"):
            parse_reading_block(_block(answers="none"))

    @allure.title("答案不在 A/B/C 之内")
    def test_invalid_answer_letter(self):
        with pytest.raises(ValidationError, match="第1题答案不是有效的选项"):
            parse_reading_block(_block(answers="1. D"))

    @allure.title("题目与答案数量不一致")
    def test_count_mismatch(self):
        questions = "1. Q1? A. a B. b C. c\n2. Q2? A. a B. b C. c"
        with pytest.raises(ValidationError, match=r"题目数量\(2\)和答案数量\(1\)不匹配"):
            parse_reading_block(_block(questions=questions, answers="1. A"))

    @allure.title("答案编号与题目编号对不上")
    def test_missing_answer_for_question(self):
        questions = "1. Q1? A. a B. b C. c\n2. Q2? A. a B. b C. c"
        with pytest.raises(ValidationError, match="缺少第2题的答案"):
            parse_reading_block(_block(questions=questions, answers="1. A\n3. B"))
