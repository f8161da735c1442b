"""Tests for TTL propagation from room metadata to dependent keys."""


def test_resync_mirrors_room_ttl(services, redis_client):
    room_id = services.registry.create_room()
    redis_client.expire(f"meta:{room_id}", 120)
    redis_client.rpush(f"messages:{room_id}", "x")
    redis_client.rpush(f"history:{room_id}", "y")

    assert services.ttl.resync(room_id) is True
    assert 0 < redis_client.ttl(f"messages:{room_id}") <= 120
    assert 0 < redis_client.ttl(f"history:{room_id}") <= 120


def test_resync_after_room_is_gone_does_not_resurrect(services, redis_client):
    room_id = services.registry.create_room()
    services.registry.destroy_room(room_id)

    assert services.ttl.resync(room_id) is False
    for key in (f"meta:{room_id}", f"messages:{room_id}", f"history:{room_id}"):
        assert not redis_client.exists(key)


def test_resync_leaves_orphans_alone_when_metadata_missing(services, redis_client):
    redis_client.rpush("messages:orphan", "x")
    assert services.ttl.resync("orphan") is False
    assert redis_client.ttl("messages:orphan") == -1


def test_resync_skips_room_without_expiry(services, redis_client):
    room_id = services.registry.create_room()
    redis_client.persist(f"meta:{room_id}")
    redis_client.rpush(f"messages:{room_id}", "x")
    assert services.ttl.resync(room_id) is False
    assert redis_client.exists(f"messages:{room_id}")
