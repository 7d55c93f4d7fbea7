# app.py
import logging
import os
import signal
import sys

import chardet  # 引入字符编码检测库
from flask import Blueprint, Flask, jsonify, request
from flask_cors import CORS

from config import Config, TestConfig
from errors import ValidationError, register_error_handlers
from models import db
from store import VocabStore, get_store

# 判断是否在测试环境中
TESTING = 'pytest' in sys.modules or os.getenv('TESTING') == 'true'

api = Blueprint('api', __name__, url_prefix='/api')


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)
    # werkzeug 的访问日志太吵
    logging.getLogger('werkzeug').setLevel(logging.WARNING)


def create_app(config_object=None):
    if config_object is None:
        config_object = TestConfig if TESTING else Config

    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.ensure_ascii = app.config.get('JSON_AS_ASCII', False)

    configure_logging(app)
    CORS(app)
    db.init_app(app)
    VocabStore.from_config(db, app.config).init_app(app)
    register_error_handlers(app, db)
    app.register_blueprint(api)

    with app.app_context():
        db.create_all()
    return app


def shutdown(app):
    """释放数据库句柄"""
    with app.app_context():
        get_store().close()


def install_signal_handlers(app):
    def handle_signal(signum, frame):
        app.logger.info("收到信号 %s，正在关闭...", signum)
        shutdown(app)
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


# --- 请求参数工具 ---

def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _as_id(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} is required')


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes')
    return bool(value)


def _decode_upload(raw_data):
    """自动识别上传文本文件的编码"""
    result = chardet.detect(raw_data)
    encoding = result['encoding'] or 'utf-8'
    if result['confidence'] < 0.3:
        encoding = 'utf-8'  # 兜底策略

    try:
        content = raw_data.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        try:
            content = raw_data.decode('utf-8')
        except UnicodeDecodeError:
            raise ValidationError('无法识别该文件编码')

    # 包含 \x00 通常说明是二进制文件
    if '\x00' in content:
        raise ValidationError('文件内容非法：检测到二进制流')
    return content


# --- 单词 ---

@api.route('/words', methods=['GET'])
def get_words():
    return jsonify([w.to_dict() for w in get_store().words.list_all()])


@api.route('/words', methods=['POST'])
def add_word():
    data = _json_body()
    word = get_store().words.create(data.get('english'), data.get('chinese'), data.get('example'))
    return jsonify(word.to_dict())


@api.route('/words/stats', methods=['GET'])
def get_word_stats():
    return jsonify(get_store().words.stats())


@api.route('/words/count', methods=['GET'])
def get_word_count():
    return jsonify({'count': get_store().words.count()})


@api.route('/words/search/<path:query>', methods=['GET'])
def search_words(query):
    return jsonify([w.to_dict() for w in get_store().words.search(query)])


@api.route('/words/batch', methods=['POST'])
def add_words_batch():
    results = get_store().words.create_batch(request.get_json(silent=True))
    return jsonify(results.to_dict())


@api.route('/import-initial-words', methods=['POST'])
def import_initial_words():
    # 初始词库：重复和不完整的条目直接跳过
    get_store().words.create_batch(request.get_json(silent=True))
    return jsonify({'message': 'Initial words imported successfully'})


@api.route('/words/batch/<ids>', methods=['DELETE'])
def delete_words_batch(ids):
    id_list = [int(part) for part in ids.split(',') if part.strip().isdigit()]
    removed = get_store().words.delete_many(id_list)
    return jsonify({'message': f'Deleted {removed} words successfully', 'deleted': removed})


@api.route('/words', methods=['DELETE'])
def clear_words():
    get_store().words.clear()
    return jsonify({'message': 'All words deleted successfully'})


@api.route('/words/<int:word_id>', methods=['GET'])
def get_word(word_id):
    return jsonify(get_store().words.get(word_id).to_dict())


@api.route('/words/<int:word_id>', methods=['PUT'])
def update_word(word_id):
    data = _json_body()
    word = get_store().words.update(word_id, data.get('english'), data.get('chinese'), data.get('example'))
    return jsonify(word.to_dict())


@api.route('/words/<int:word_id>', methods=['DELETE'])
def delete_word(word_id):
    get_store().words.delete(word_id)
    return jsonify({'message': 'Word deleted successfully'})


@api.route('/words/<int:word_id>/update-stats', methods=['POST'])
def update_word_stats(word_id):
    data = _json_body()
    get_store().words.update_stats(word_id, _as_bool(data.get('isCorrect')))
    return jsonify({'success': True})


# --- 错词本 ---

@api.route('/mistakes', methods=['GET'])
def get_mistakes():
    return jsonify([m.to_dict(with_word=True) for m in get_store().mistakes.list_all()])


@api.route('/mistakes', methods=['POST'])
def add_mistake():
    word_id = _as_id(_json_body().get('word_id'), 'Word ID')
    mistake = get_store().mistakes.record_wrong(word_id)
    return jsonify(mistake.to_dict())


@api.route('/mistakes/correct/<int:word_id>', methods=['POST'])
def record_correct(word_id):
    mistake = get_store().mistakes.record_correct(word_id)
    if mistake is None:
        return jsonify({'message': 'Word removed from mistakes list', 'word_id': word_id, 'removed': True})
    return jsonify(mistake.to_dict())


@api.route('/mistakes/<int:mistake_id>', methods=['DELETE'])
def delete_mistake(mistake_id):
    get_store().mistakes.delete(mistake_id)
    return jsonify({'message': 'Mistake deleted successfully'})


@api.route('/mistakes', methods=['DELETE'])
def clear_mistakes():
    get_store().mistakes.clear()
    return jsonify({'message': 'All mistakes deleted successfully'})


# --- 测验 ---

@api.route('/test/random/<int:count>', methods=['GET'])
def random_words(count):
    return jsonify([w.to_dict() for w in get_store().quiz.random_words(count)])


@api.route('/test/distractors/<int:word_id>/<int:count>', methods=['GET'])
def distractors(word_id, count):
    if request.args.get('mode') == 'records':
        words = get_store().quiz.distractors(word_id, count, as_records=True)
        return jsonify([w.to_dict() for w in words])
    return jsonify(get_store().quiz.distractors(word_id, count))


@api.route('/test/answer', methods=['POST'])
def submit_answer():
    data = _json_body()
    word_id = _as_id(data.get('wordId'), 'wordId')
    if 'isCorrect' not in data:
        raise ValidationError('isCorrect is required')
    return jsonify(get_store().record_answer(word_id, _as_bool(data.get('isCorrect'))))


# --- 测试结果 ---

@api.route('/test-results', methods=['GET'])
def get_test_results():
    return jsonify([r.to_dict() for r in get_store().results.list_all()])


@api.route('/test-results', methods=['POST'])
def add_test_result():
    data = _json_body()
    total = data.get('total_items', data.get('total_words'))
    result = get_store().results.record(
        data.get('score'), total, data.get('correct_count'), data.get('incorrect_count'),
        type=data.get('type')
    )
    return jsonify(result.to_dict())


@api.route('/test-results/<int:result_id>', methods=['DELETE'])
def delete_test_result(result_id):
    get_store().results.delete(result_id)
    return jsonify({'message': 'Test result deleted successfully'})


@api.route('/test-results', methods=['DELETE'])
def clear_test_results():
    get_store().results.clear()
    return jsonify({'message': 'All test results deleted successfully'})


@api.route('/test-activity', methods=['GET'])
def test_activity():
    return jsonify(get_store().results.activity(request.args.get('days')))


# --- 阅读理解 ---

@api.route('/reading-passages', methods=['GET'])
@api.route('/reading/passages', methods=['GET'])
def get_reading_passages():
    return jsonify([p.to_dict() for p in get_store().reading.list_passages()])


@api.route('/reading/passage/<int:passage_id>', methods=['GET'])
def get_reading_passage(passage_id):
    passage, questions = get_store().reading.get_passage(passage_id)
    return jsonify({'passage': passage, 'questions': questions})


@api.route('/reading-passages/<int:passage_id>', methods=['GET'])
def get_reading_passage_flat(passage_id):
    passage, questions = get_store().reading.get_passage(passage_id)
    passage['questions'] = questions
    return jsonify(passage)


@api.route('/reading-passages/<int:passage_id>', methods=['DELETE'])
def delete_reading_passage(passage_id):
    get_store().reading.delete_passage(passage_id)
    return jsonify({'message': 'Passage deleted successfully'})


@api.route('/reading/import', methods=['POST'])
def import_reading():
    if 'file' in request.files:
        raw_data = request.files['file'].read()
        content = _decode_upload(raw_data) if raw_data else ''
    else:
        content = _json_body().get('content')
    return jsonify(get_store().reading.import_block(content))


@api.route('/reading/submit-answers', methods=['POST'])
def submit_reading_answers():
    data = _json_body()
    return jsonify(get_store().reading.submit_answers(data.get('passageId'), data.get('answers')))


@api.route('/reading-passages/<int:passage_id>/submit-answers', methods=['POST'])
def submit_reading_answers_for(passage_id):
    data = _json_body()
    # 请求体里的 passage_id 优先
    target = data.get('passage_id') or passage_id
    return jsonify(get_store().reading.submit_answers(target, data.get('answers')))


app = create_app()


if __name__ == '__main__':
    install_signal_handlers(app)
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=False)
