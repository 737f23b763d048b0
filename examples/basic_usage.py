"""Basic usage example for the etcdv2 client."""

import asyncio
import logging

from etcdv2 import ClientConfig, EtcdClient, KeyNotFoundError, NodeExistError


async def main() -> None:
    """Demonstrate basic etcd v2 operations."""
    logging.basicConfig(level=logging.INFO)

    # Create client configuration
    config = ClientConfig(
        host="localhost",
        port=4001,
        timeout=5000,  # Request timeout in milliseconds
    )

    # Use async context manager for automatic cleanup
    async with EtcdClient(config) as client:
        # Set a value
        print("\n1. Setting key...")
        response = await client.set("/demo/user", "Alice")
        print(f"   Stored at index {response.node.modified_index}")

        # Get a value
        print("\n2. Getting value...")
        response = await client.get("/demo/user")
        print(f"   Retrieved: {response.node.value}")

        # Set with TTL, then clear it
        print("\n3. Setting with TTL (5 seconds)...")
        response = await client.set("/demo/session", "temporary-data", ttl=5)
        print(f"   Expires at {response.node.expiration}")
        response = await client.clear_ttl("/demo/session")
        print(f"   TTL cleared: {response.node.ttl is None}")

        # Conditional write (only if not exists)
        print("\n4. Create-only write...")
        try:
            await client.compare_and_set("/demo/user", "Bob", prev_exist=False)
            print("   Value written")
        except NodeExistError as e:
            print(f"   Expected error: {e}")

        # Queue of in-order keys
        print("\n5. Appending to a queue...")
        for job in ["build", "test"]:
            response = await client.create("/demo/queue", job)
            print(f"   {job} -> {response.node.key}")

        # Watch for the next two changes below /demo
        print("\n6. Watching /demo...")
        start = response.node.modified_index + 1

        async def writer() -> None:
            await client.set("/demo/user", "Carol")
            await client.delete("/demo/queue", recursive=True)

        writing = asyncio.create_task(writer())
        count = 0
        async for change in client.watch("/demo", wait_index=start, recursive=True):
            print(f"   {change.action.value} {change.node.key}")
            count += 1
            if count == 2:
                break
        await writing

        # Delete and verify
        print("\n7. Deleting...")
        await client.delete("/demo", recursive=True)
        try:
            await client.get("/demo/user")
        except KeyNotFoundError:
            print("   Key successfully deleted")


if __name__ == "__main__":
    asyncio.run(main())
