from app.db.models.database import DownloadLogs, Tutorials, ViewLogs
from tests.conftest import ADMIN, READER


def _activity(SessionLocal, seed, book_id):
    with SessionLocal() as s:
        tutorial = Tutorials(title="Intro to SQL", category_id=seed.other_category_id)
        s.add(tutorial)
        s.flush()
        s.add_all(
            [
                ViewLogs(content_id=book_id, content_type="book", user_id=seed.reader_id),
                ViewLogs(content_id=book_id, content_type="book", user_id=seed.admin_id),
                ViewLogs(content_id=tutorial.id, content_type="tutorial", user_id=seed.reader_id),
                DownloadLogs(content_id=book_id, content_type="book", user_id=seed.reader_id),
            ]
        )
        s.commit()
        return tutorial.id


def test_dashboard_counts(client, seed, make_book, SessionLocal):
    book_id = make_book(book_type="link", external_link="https://x")
    tutorial_id = _activity(SessionLocal, seed, book_id)

    r = client.get("/api/admin/analytics", headers=ADMIN)
    assert r.status_code == 200
    body = r.json()
    assert body["users"]["total"] == 2
    assert body["content"] == {"totalBooks": 1, "totalTutorials": 1, "totalCategories": 2}
    assert body["engagement"] == {"totalViews": 3, "totalDownloads": 1, "totalRatings": 0}

    top = body["topContent"]
    assert [(item["type"], item["id"]) for item in top] == [("book", book_id), ("tutorial", tutorial_id)]
    assert top[0]["views"] == 2
    assert top[0]["downloads"] == 1
    assert top[1]["category"] == "Database"

    stats = {c["name"]: c for c in body["categoryStats"]}
    assert stats["Programming"] == {"name": "Programming", "bookCount": 1, "tutorialCount": 0, "totalViews": 2}
    assert stats["Database"]["totalViews"] == 1
    assert body["categoryStats"][0]["name"] == "Programming"


def test_analytics_requires_admin(client):
    assert client.get("/api/admin/analytics", headers=READER).status_code == 403
    assert client.get("/api/admin/analytics/daily-activity").status_code == 401


def test_user_growth_is_cumulative(client):
    series = client.get("/api/admin/analytics/user-growth", headers=ADMIN).json()
    assert len(series) == 1
    assert series[0]["newUsers"] == 2
    assert series[0]["totalUsers"] == 2
    assert len(series[0]["month"]) == 7


def test_recent_activity(client, seed, make_book, SessionLocal):
    make_book(title="Fresh", author="Writer", book_type="link", external_link="https://x")
    with SessionLocal() as s:
        s.add(Tutorials(title="Brand new", category_id=seed.category_id))
        s.commit()

    events = client.get("/api/admin/analytics/recent-activity", headers=ADMIN, params={"limit": 5}).json()
    actions = {e["action"] for e in events}
    assert actions == {"New book added: Fresh", "New tutorial published: Brand new"}
    book_event = next(e for e in events if e["type"] == "book")
    assert book_event["author"] == "Writer"
    assert book_event["time"] == "Just now"

    one = client.get("/api/admin/analytics/recent-activity", headers=ADMIN, params={"limit": 1}).json()
    assert len(one) == 1


def test_daily_activity(client, seed, make_book, SessionLocal):
    book_id = make_book(book_type="link", external_link="https://x")
    _activity(SessionLocal, seed, book_id)

    days = client.get("/api/admin/analytics/daily-activity", headers=ADMIN).json()
    assert len(days) == 1
    today = days[0]
    assert today["activeUsers"] == 2
    assert today["pageViews"] == 3
    assert today["downloads"] == 1
