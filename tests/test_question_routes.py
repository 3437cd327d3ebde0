def mcq(question="What does SQL stand for?", correct="A", **extra):
    return {
        "question_type": "mcq",
        "question": question,
        "options": [{"id": o, "text": f"Option {o}", "isCorrect": o == correct} for o in "ABCD"],
        **extra,
    }


async def test_mcq_needs_exactly_one_correct_option(client, company):
    payload = mcq()
    payload["options"][1]["isCorrect"] = True
    response = await client.post("/api/questions", headers=company["headers"], json=payload)
    assert response.status_code == 400


async def test_mcq_needs_four_options(client, company):
    payload = mcq()
    payload["options"] = payload["options"][:2]
    response = await client.post("/api/questions", headers=company["headers"], json=payload)
    assert response.status_code == 400


async def test_correct_answer_defaults_to_correct_option(client, company):
    response = await client.post("/api/questions", headers=company["headers"], json=mcq(correct="C"))
    assert response.status_code == 201
    assert response.json()["correct_answer"] == "C"


async def test_behavioral_question_with_tags(client, company):
    response = await client.post("/api/questions", headers=company["headers"], json={
        "question_type": "behavioral",
        "question": "Tell me about a time you disagreed with a teammate",
        "expected_answer": "Uses STAR",
        "tags": ["teamwork"],
    })
    assert response.status_code == 201
    assert response.json()["tags"] == ["teamwork"]
    assert response.json()["options"] is None


async def test_collections(client, company):
    collection = (await client.post("/api/questions/collections", headers=company["headers"], json={
        "name": "SQL basics", "interview_type": "mcq",
    })).json()
    await client.post("/api/questions", headers=company["headers"], json=mcq(collection_id=collection["id"]))
    await client.post("/api/questions", headers=company["headers"], json=mcq("What is an index?"))

    collections = (await client.get("/api/questions/collections", headers=company["headers"])).json()
    assert collections[0]["question_count"] == 1

    in_collection = (await client.get("/api/questions", headers=company["headers"],
                                      params={"collection_id": collection["id"]})).json()
    assert len(in_collection) == 1

    deleted = await client.delete(f"/api/questions/collections/{collection['id']}", headers=company["headers"])
    assert deleted.status_code == 200

    remaining = (await client.get("/api/questions", headers=company["headers"])).json()
    assert len(remaining) == 2
    assert all(q["collection_id"] is None for q in remaining)


async def test_unknown_collection(client, company):
    response = await client.post("/api/questions", headers=company["headers"], json=mcq(collection_id="missing"))
    assert response.status_code == 404
    missing = await client.delete("/api/questions/collections/missing", headers=company["headers"])
    assert missing.status_code == 404


async def test_filters_and_soft_delete(client, company):
    easy = (await client.post("/api/questions", headers=company["headers"],
                              json=mcq(difficulty_level="easy"))).json()
    await client.post("/api/questions", headers=company["headers"], json=mcq("What is a join?", difficulty_level="hard"))

    filtered = (await client.get("/api/questions", headers=company["headers"], params={"difficulty": "easy"})).json()
    assert [q["id"] for q in filtered] == [easy["id"]]

    assert (await client.delete(f"/api/questions/{easy['id']}", headers=company["headers"])).status_code == 200
    assert (await client.get(f"/api/questions/{easy['id']}", headers=company["headers"])).status_code == 404
    assert len((await client.get("/api/questions", headers=company["headers"])).json()) == 1
