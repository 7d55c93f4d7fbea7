"""
随机出题、答题和测试结果接口集成测试
"""
from datetime import date

import allure
import pytest

WORDS = [('apple', '苹果'), ('banana', '香蕉'), ('cat', '猫'), ('dog', '狗'), ('egg', '鸡蛋')]


@pytest.fixture
def word_ids(test_client):
    ids = []
    for english, chinese in WORDS:
        ids.append(test_client.post('/api/words', json={'english': english, 'chinese': chinese}).get_json()['id'])
    return ids


@allure.epic("集成测试类")
@allure.feature("随机出题接口")
@pytest.mark.integration
class TestQuizApi:

    @allure.title("1. 随机抽词")
    def test_random_words(self, test_client, word_ids):
        words = test_client.get('/api/test/random/3').get_json()
        assert len(words) == 3
        assert len({w['id'] for w in words}) == 3

    @allure.title("2. 数量超过词库返回全部")
    def test_random_words_all(self, test_client, word_ids):
        words = test_client.get('/api/test/random/50').get_json()
        assert sorted(w['id'] for w in words) == sorted(word_ids)

    @allure.title("3. 干扰项")
    def test_distractors(self, test_client, word_ids):
        options = test_client.get(f'/api/test/distractors/{word_ids[0]}/3').get_json()
        assert len(options) == 3
        assert '苹果' not in options
        assert set(options) <= {cn for _, cn in WORDS}

    @allure.title("4. 干扰项返回单词记录")
    def test_distractors_records(self, test_client, word_ids):
        records = test_client.get(f'/api/test/distractors/{word_ids[0]}/10?mode=records').get_json()
        assert sorted(r['id'] for r in records) == sorted(word_ids[1:])

    @allure.title("5. 答题：答错入错词本，连续答对出本")
    def test_answer_flow(self, test_client, word_ids):
        word_id = word_ids[0]

        result = test_client.post('/api/test/answer', json={'wordId': word_id, 'isCorrect': False}).get_json()
        assert result['state'] == 'flagged'
        assert result['mistake']['mistake_count'] == 1

        result = test_client.post('/api/test/answer', json={'wordId': word_id, 'isCorrect': True}).get_json()
        assert result['state'] == 'flagged'
        assert result['mistake']['correct_streak'] == 1

        result = test_client.post('/api/test/answer', json={'wordId': word_id, 'isCorrect': True}).get_json()
        assert result['state'] == 'normal'
        assert result['word']['exposure'] == 3
        assert result['word']['familiarity'] == 2

    @allure.title("6. 答题参数校验")
    def test_answer_validation(self, test_client, word_ids):
        assert test_client.post('/api/test/answer', json={'isCorrect': True}).status_code == 400
        assert test_client.post('/api/test/answer', json={'wordId': word_ids[0]}).status_code == 400
        assert test_client.post('/api/test/answer', json={'wordId': 999, 'isCorrect': True}).status_code == 404


@allure.epic("集成测试类")
@allure.feature("测试结果接口")
@pytest.mark.integration
class TestResultsApi:

    @allure.title("1. 保存、列出、删除测试结果")
    def test_crud(self, test_client):
        payload = {'score': 80, 'total_words': 10, 'correct_count': 8, 'incorrect_count': 2}
        created = test_client.post('/api/test-results', json=payload).get_json()
        assert created['score'] == 80
        assert created['total_items'] == 10
        assert created['type'] == 'english-to-chinese-multiple'

        rows = test_client.get('/api/test-results').get_json()
        assert [r['id'] for r in rows] == [created['id']]

        assert test_client.delete(f"/api/test-results/{created['id']}").status_code == 200
        assert test_client.delete(f"/api/test-results/{created['id']}").status_code == 404

    @allure.title("2. 缺少字段返回 400")
    def test_missing_fields(self, test_client):
        response = test_client.post('/api/test-results', json={'score': 80})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'All test result fields are required'

    @allure.title("2.1 分数不是整数返回 400")
    def test_fractional_score(self, test_client):
        payload = {'score': 87.5, 'total_items': 8, 'correct_count': 7, 'incorrect_count': 1}
        response = test_client.post('/api/test-results', json=payload)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'score must be an integer'
        assert test_client.get('/api/test-results').get_json() == []

    @allure.title("3. 学习日历")
    def test_activity(self, test_client):
        payload = {'score': 50, 'total_items': 2, 'correct_count': 1, 'incorrect_count': 1}
        for _ in range(3):
            test_client.post('/api/test-results', json=payload)

        activity = test_client.get('/api/test-activity').get_json()
        assert activity == [{'date': date.today().isoformat(), 'count': 3}]

        assert test_client.get('/api/test-activity?days=abc').status_code == 400

        assert test_client.delete('/api/test-results').status_code == 200
        assert test_client.get('/api/test-activity').get_json() == []
