import json

from common.ai.parsing import (
    PARSE_FAILURE_MESSAGE,
    PLACEHOLDER_TEXT,
    UNEXPECTED_SHAPE_MESSAGE,
    PayloadShape,
    classify_audit_payload,
    parse_audit_response,
    parse_json_response,
    rebuild_issue,
)


def test_direct_parse_of_clean_json():
    outcome = parse_json_response('  {"conclusion": "ok"}  ')
    assert outcome.ok
    assert outcome.data == {"conclusion": "ok"}


def test_trailing_commas_are_tolerated():
    outcome = parse_json_response('[{"a": 1,}, {"b": 2},]')
    assert outcome.data == [{"a": 1}, {"b": 2}]


def test_fenced_block_is_extracted():
    text = '以下是结果：\n```json\n{"conclusion": "两者相关"}\n```\n希望有帮助'
    assert parse_json_response(text).data == {"conclusion": "两者相关"}


def test_outer_brackets_win_over_braces():
    text = 'Sure! [{"problematicText": "x", "suggestion": "y"}] done {not json}'
    outcome = parse_json_response(text)
    assert outcome.data == [{"problematicText": "x", "suggestion": "y"}]


def test_outer_braces_used_without_brackets():
    text = 'Result -> {"conclusion": "c"} <- end'
    assert parse_json_response(text).data == {"conclusion": "c"}


def test_no_issue_sentinel_only_when_list_expected():
    text = "I reviewed the text. No issues found."
    assert parse_json_response(text, expect_list=True).data == []

    outcome = parse_json_response(text)
    assert not outcome.ok
    assert outcome.error == PARSE_FAILURE_MESSAGE
    assert outcome.raw_response == text


def test_chinese_sentinel():
    assert parse_json_response("全文未发现问题。", expect_list=True).data == []


def test_null_counts_as_failure():
    outcome = parse_json_response("null")
    assert outcome.error == PARSE_FAILURE_MESSAGE


def test_classify_payload_shapes():
    assert classify_audit_payload([]).shape is PayloadShape.LIST
    wrapped = classify_audit_payload({"problems": [{"problematicText": "a"}]})
    assert wrapped.shape is PayloadShape.WRAPPED
    assert wrapped.items == [{"problematicText": "a"}]
    single = classify_audit_payload({"problematicText": "a", "suggestion": "b"})
    assert single.shape is PayloadShape.SINGLE
    assert classify_audit_payload({"foo": 1}).shape is PayloadShape.UNRECOGNIZED
    assert classify_audit_payload("text").shape is PayloadShape.UNRECOGNIZED


def test_rebuild_issue_defaults_and_salvage():
    issue = rebuild_issue({"problematicText": "的的", "suggestion": "的"})
    assert issue.checklist_item == "通用规则"
    assert issue.explanation == "无详细说明"

    salvaged = rebuild_issue({"suggestion": "改为 X", "reason": "重复"})
    assert salvaged.problematic_text == PLACEHOLDER_TEXT
    assert salvaged.explanation == "重复"

    assert rebuild_issue({"checklistItem": "全文错别字"}) is None
    assert rebuild_issue("not a dict") is None


def test_parse_audit_response_keeps_order_and_drops_invalid():
    text = """```json
    [
      {"problematicText": "A", "suggestion": "a", "checklistItem": "全文错别字", "explanation": "e1"},
      {"foo": "bar"},
      {"problematicText": "B", "suggestion": "b"},
    ]
    ```"""
    result = parse_audit_response(text)
    assert result.error is None
    assert [issue.problematic_text for issue in result.issues] == ["A", "B"]


def test_parse_audit_response_unexpected_shape():
    result = parse_audit_response('{"summary": "looks fine"}')
    assert result.issues == []
    assert result.error == UNEXPECTED_SHAPE_MESSAGE
    assert result.raw_response == '{"summary": "looks fine"}'


def test_parse_audit_response_unparseable():
    result = parse_audit_response("the model rambled")
    assert result.issues == []
    assert result.error == PARSE_FAILURE_MESSAGE
    assert result.raw_response == "the model rambled"


def test_fenced_audit_example_yields_one_issue():
    text = (
        "Sure, here:\n```json\n"
        '[{"problematicText":"foo","suggestion":"bar","checklistItem":"x","explanation":"y"}]\n```'
    )
    result = parse_audit_response(text)
    assert len(result.issues) == 1
    issue = result.issues[0]
    assert (issue.problematic_text, issue.suggestion, issue.checklist_item, issue.explanation) == (
        "foo",
        "bar",
        "x",
        "y",
    )


def test_sentence_with_sentinel_is_empty_list():
    assert parse_json_response("经检查，未发现任何问题。", expect_list=True).data == []


def test_reparsing_canonical_form_is_stable():
    for text in ['{"a": 1,}', '```json\n[1, 2, {"b": null}]\n```', 'prefix {"k": "值"} suffix']:
        first = parse_json_response(text).data
        again = parse_json_response(json.dumps(first, ensure_ascii=False)).data
        assert again == first
