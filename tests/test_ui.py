from werkzeug.test import create_environ
from werkzeug.wrappers import Request

from nyla.ui import UIHandlers, render_dashboard


def test_dashboard_is_a_document():
    page = render_dashboard("https://api.example.com")
    assert page.startswith("<!DOCTYPE html>")
    assert "Nyla Analytics Dashboard" in page


def test_dashboard_polls_stats_endpoint():
    page = render_dashboard("https://api.example.com")
    assert 'hx-get="https://api.example.com/v1/stats/realtime"' in page
    assert 'hx-trigger="load, every 30s"' in page
    assert 'hx-swap="innerHTML"' in page


def test_dashboard_tags_are_balanced():
    page = render_dashboard("https://api.example.com")
    for tag in ("div", "nav", "a", "script", "head", "body", "main", "aside", "header"):
        assert page.count(f"<{tag}>") + page.count(f"<{tag} ") == page.count(f"</{tag}>")


def test_dashboard_lists_metric_cards():
    page = render_dashboard("https://api.example.com")
    for label in ("Unique Visitors", "Active Users", "Loading...", "[Traffic Chart Placeholder]"):
        assert label in page


def test_handler_serves_rendered_page():
    handlers = UIHandlers("https://api.example.com")
    response = handlers.dashboard(Request(create_environ("/")))
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "text/html; charset=utf-8"
    assert response.get_data(as_text=True) == render_dashboard("https://api.example.com")