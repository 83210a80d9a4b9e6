"""
Integration tests for credit-metered enhancement jobs
"""
import pytest

from conftest import create_plan, register, subscribe
from db.models.billing import CreditUsage
from db.models.enhancement import EnhancementJob
from db.models.project import ImageVersion


def create_project_with_images(client, headers, count=3, name="Seaside villa"):
    project = client.post("/projects/", json={"name": name}, headers=headers).json()["project"]
    image_ids = []
    for index in range(count):
        response = client.post(
            f"/projects/{project['id']}/images",
            json={"originalUrl": f"https://cdn.example.com/{name}/{index}.jpg", "label": f"Room {index}"},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        image_ids.append(response.json()["image"]["id"])
    return project["id"], image_ids


@pytest.fixture
def subscribed_user(client, registered_user, db_session):
    plan = create_plan(db_session, name="Starter", credits=5)
    subscribe(db_session, registered_user["user"]["id"], plan)
    return registered_user


class TestCreateJobs:
    """Test job admission against the credit allowance"""

    def test_credits_are_charged_per_image(self, client, auth_headers, subscribed_user, db_session):
        """Test 5 credits admit 3 images, refuse 3 more, then admit the last 2"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=6)

        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids[:3]},
            headers=auth_headers,
        )
        assert response.status_code == 201
        jobs = response.json()["jobs"]
        assert len(jobs) == 3
        assert {job["imageId"] for job in jobs} == set(image_ids[:3])
        assert all(job["status"] == "PENDING" for job in jobs)
        assert all(job["resultVersionId"] is None for job in jobs)

        usage = client.get("/billing/me/usage", headers=auth_headers).json()["usage"]["usage"]
        assert usage == {"usedCredits": 3, "remainingCredits": 2}

        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids[3:]},
            headers=auth_headers,
        )
        assert response.status_code == 402
        body = response.json()
        assert body["code"] == "INSUFFICIENT_CREDITS"
        assert body["requiredCredits"] == 3
        assert body["remainingCredits"] == 2

        # Nothing was written for the refused request
        assert db_session.query(EnhancementJob).count() == 3
        assert db_session.query(CreditUsage).count() == 1

        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids[3:5]},
            headers=auth_headers,
        )
        assert response.status_code == 201
        usage = client.get("/billing/me/usage", headers=auth_headers).json()["usage"]["usage"]
        assert usage == {"usedCredits": 5, "remainingCredits": 0}

    def test_without_subscription(self, client, auth_headers):
        """Test jobs need an active subscription"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=1)
        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids},
            headers=auth_headers,
        )
        assert response.status_code == 402
        assert response.json()["code"] == "NO_ACTIVE_SUBSCRIPTION"

    def test_empty_image_list(self, client, auth_headers, subscribed_user):
        """Test an empty request is invalid"""
        project_id, _ = create_project_with_images(client, auth_headers, count=1)
        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": []},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_foreign_project(self, client, auth_headers, subscribed_user):
        """Test another user's project is indistinguishable from a missing one"""
        other = register(client, email="other@example.com")
        other_headers = {"Authorization": f"Bearer {other['token']}"}
        project_id, image_ids = create_project_with_images(client, other_headers, count=1)

        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND_OR_FORBIDDEN"

    def test_image_from_another_project(self, client, auth_headers, subscribed_user, db_session):
        """Test every image must belong to the requested project"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=1)
        _, other_images = create_project_with_images(client, auth_headers, count=1, name="Loft")

        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids + other_images},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IMAGES"
        assert db_session.query(CreditUsage).count() == 0

    def test_duplicate_image_ids(self, client, auth_headers, subscribed_user):
        """Test the same image cannot be charged twice in one request"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=1)
        response = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids * 2},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IMAGES"


class TestJobLifecycle:
    """Test listing and completing jobs"""

    def test_list_jobs_newest_first(self, client, auth_headers, subscribed_user):
        """Test jobs come back newest first with their image"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=2)
        client.post("/enhancement/jobs", json={"projectId": project_id, "imageIds": [image_ids[0]]}, headers=auth_headers)
        client.post("/enhancement/jobs", json={"projectId": project_id, "imageIds": [image_ids[1]]}, headers=auth_headers)

        response = client.get(f"/enhancement/projects/{project_id}/jobs", headers=auth_headers)
        assert response.status_code == 200
        jobs = response.json()["jobs"]
        assert [job["imageId"] for job in jobs] == [image_ids[1], image_ids[0]]
        assert jobs[0]["image"]["label"] == "Room 1"

    def test_list_jobs_foreign_project(self, client, auth_headers):
        """Test listing jobs of a project the caller does not own"""
        response = client.get("/enhancement/projects/999/jobs", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND_OR_FORBIDDEN"

    def test_complete_job_is_idempotent(self, client, auth_headers, subscribed_user, db_session):
        """Test completing twice returns the same job and one enhanced version"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=1)
        job = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids},
            headers=auth_headers,
        ).json()["jobs"][0]

        first = client.post(
            f"/enhancement/jobs/{job['id']}/complete",
            json={"enhancedUrl": "https://cdn.example.com/enhanced/0.jpg"},
            headers=auth_headers,
        )
        assert first.status_code == 200
        completed = first.json()["job"]
        assert completed["status"] == "COMPLETED"
        assert completed["completedAt"] is not None
        assert completed["resultVersionId"] is not None

        second = client.post(
            f"/enhancement/jobs/{job['id']}/complete",
            json={"enhancedUrl": "https://cdn.example.com/enhanced/other.jpg"},
            headers=auth_headers,
        )
        assert second.status_code == 200
        assert second.json()["job"] == completed

        versions = db_session.query(ImageVersion).filter_by(image_id=image_ids[0], type="ENHANCED").all()
        assert len(versions) == 1
        assert versions[0].id == completed["resultVersionId"]
        assert versions[0].url == "https://cdn.example.com/enhanced/0.jpg"

        images = client.get(f"/projects/{project_id}/images", headers=auth_headers).json()["images"]
        assert sorted(v["type"] for v in images[0]["versions"]) == ["ENHANCED", "ORIGINAL"]

    def test_complete_foreign_job(self, client, auth_headers, subscribed_user):
        """Test a job can only be completed by its owner"""
        project_id, image_ids = create_project_with_images(client, auth_headers, count=1)
        job = client.post(
            "/enhancement/jobs",
            json={"projectId": project_id, "imageIds": image_ids},
            headers=auth_headers,
        ).json()["jobs"][0]

        other = register(client, email="other@example.com")
        response = client.post(
            f"/enhancement/jobs/{job['id']}/complete",
            json={"enhancedUrl": "https://cdn.example.com/enhanced/0.jpg"},
            headers={"Authorization": f"Bearer {other['token']}"},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
