"""Python scenarios for the example plan.

Run with:
    stampede run examples/plan.json -m workflow_scenarios

(from inside ``examples/``, or with ``examples`` on ``PYTHONPATH``).
"""

from __future__ import annotations

from datetime import datetime, timezone

from stampede.scenarios import ExecutionContext, scenario


@scenario("registration_flow", weight=0.1)
async def registration_flow(ctx: ExecutionContext) -> None:
    """Register a user, then read, update and order as that user."""
    user = dict(ctx.pick("users"))
    created = await ctx.post("/api/users", user, name="POST /api/users")
    if not created.succeeded:
        return

    try:
        body = created.json()
    except ValueError:
        return
    user_id = body.get("id") if isinstance(body, dict) else None
    if user_id is None:
        return

    if not await ctx.think(0.5, 1.5):
        return
    await ctx.get(f"/api/users/{user_id}", name="GET /api/users/{id}")

    if not await ctx.think(0.5, 1.5):
        return
    user["age"] = user.get("age", 30) + ctx.rng.randint(0, 4)
    user["updatedAt"] = datetime.now(timezone.utc).isoformat()
    await ctx.put(f"/api/users/{user_id}", user, name="PUT /api/users/{id}")

    if not await ctx.think(0.5, 1.5):
        return
    order = {
        "userId": user_id,
        "products": [{"productId": ctx.random_id(), "quantity": ctx.rng.randint(1, 5)}],
        "totalAmount": round(ctx.rng.uniform(20, 220), 2),
    }
    await ctx.post("/api/orders", order, name="POST /api/orders")
