"""Pytest configuration and shared fixtures."""

import json
import os

import pytest


def element(tag, *children, **attr):
    """Build a statute tag-tree element."""
    node = {"tag": tag, "children": list(children)}
    if attr:
        node["attr"] = attr
    return node


OBLIGATION = "建築物は、基準に適合しなければならない。"
ENACTMENT = "この法律は、公布の日から施行する。"
PROHIBITION = "何人も、無許可で工事をしてはならない。"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep KIJO_* variables of the developer shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("KIJO_"):
            monkeypatch.delenv(key)


@pytest.fixture
def el():
    return element


@pytest.fixture
def statute():
    """Law > Chapter > Article 1 with an obligation and an enactment paragraph."""
    article = element(
        "Article",
        element("ArticleCaption", "（目的）"),
        element("ArticleTitle", "第一条"),
        element(
            "Paragraph",
            element("ParagraphNum"),
            element("ParagraphSentence", element("Sentence", OBLIGATION)),
            Num="1",
        ),
        element(
            "Paragraph",
            element("ParagraphNum", "２"),
            element("ParagraphSentence", element("Sentence", ENACTMENT)),
            element(
                "Item",
                element("ItemTitle", "一"),
                element("ItemSentence", element("Sentence", PROHIBITION)),
                Num="1",
            ),
            Num="2",
        ),
        Num="1",
    )
    chapter = element("Chapter", element("ChapterTitle", "第一章 総則"), article, Num="1")
    return element(
        "Law",
        element("LawNum", "昭和二十五年法律第二百一号"),
        element("LawBody", element("LawTitle", "建築基準法"), element("MainProvision", chapter)),
        Era="Showa",
    )


@pytest.fixture
def mechanism_nodes():
    """Raw input -> process -> derived information -> process -> final result."""
    return [
        {"id": "i-use", "type": "information", "title": "建築物の用途", "symbol": "U"},
        {"id": "p-classify", "type": "process", "title": "用途を判定"},
        {"id": "i-special", "type": "information", "title": "特殊建築物該当"},
        {"id": "p-check", "type": "process", "title": "基準適合を判定"},
        {"id": "i-result", "type": "information", "title": "基準適合"},
    ]


@pytest.fixture
def mechanism_edges():
    return [
        {"id": "e1", "from": "i-use", "to": "p-classify", "role": "input"},
        {"id": "e2", "from": "p-classify", "to": "i-special", "role": "output"},
        {"id": "e3", "from": "i-special", "to": "p-check", "role": "input"},
        {"id": "e4", "from": "p-check", "to": "i-result", "role": "output"},
    ]


@pytest.fixture
def flow_diagram():
    return {
        "title": "確認の手順",
        "nodes": [
            {"id": "start", "type": "terminal", "title": "開始", "result": "start"},
            {"id": "d-special", "type": "decision", "title": "特殊建築物か"},
            {"id": "pass", "type": "terminal", "title": "適合", "result": "pass"},
            {"id": "fail", "type": "terminal", "title": "不適合", "result": "fail"},
        ],
        "edges": [
            {"id": "f1", "from": "start", "to": "d-special", "role": "flow"},
            {"id": "f2", "from": "d-special", "to": "pass", "role": "no"},
            {"id": "f3", "from": "d-special", "to": "fail", "role": "yes"},
        ],
    }


@pytest.fixture
def document(mechanism_nodes, mechanism_edges, flow_diagram):
    return {
        "id": "A43_P1",
        "version": "3.0.0",
        "page_title": {"title": "敷地等と道路との関係", "target_subject": "敷地"},
        "legal_ref": {
            "law_id": "325AC0000000201",
            "law_type": "act",
            "law_name": "建築基準法",
            "law_abbrev": "法",
            "article": "43",
            "paragraph": "1",
        },
        "labels": ["道路"],
        "kijo_diagram": {"nodes": mechanism_nodes, "edges": mechanism_edges},
        "flow_diagram": flow_diagram,
    }


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON file under tmp_path and return its path as a string."""
    def write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return str(path)
    return write
