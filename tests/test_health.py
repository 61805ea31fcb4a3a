from fastapi import status


def test_health(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_service(client):
    body = client.get("/").json()
    assert body["name"] == "Social Network"
    assert body["docs"] == "/docs"
