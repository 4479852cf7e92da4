#!/usr/bin/env python3
"""Example: Load the knowledge base and generate posts interactively."""

import logging
import os
import sys

from post_kb import GenerationContext, PostGenerationRequest, PostGenerationService, RAGService, load_kb
from post_kb.config import Settings, create_chat_model, create_embedding_service
from post_kb.schemas import PLATFORMS, POST_TYPES


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    settings = Settings()
    kb_path = settings.current_kb_path
    prompts_only = os.getenv("PROMPTS_ONLY", "").lower() in ("1", "true", "yes")

    if not os.path.exists(kb_path):
        print(f"Error: Knowledge base not found: {kb_path}")
        print("Run example_build.py first or set KB_DIR environment variable")
        sys.exit(1)

    print("=" * 60)
    print("Post Generation Example")
    print("=" * 60)
    print(f"KB path:         {kb_path}")
    print(f"Embedding model: {settings.embed_model}")
    print(f"Chat model:      {settings.llm_model}")
    print()

    # Load KB
    print("Loading knowledge base...")
    kb = load_kb(kb_path)
    stats = kb.store.get_stats()

    print("Loaded successfully")
    print(f"  - KB version:     {kb.manifest.kb_version}")
    print(f"  - Document count: {kb.manifest.doc_count}")
    print(f"  - Chunk count:    {kb.manifest.chunk_count}")
    print(f"  - FAISS index:    {stats['total_vector_count']} vectors, {stats['dimension']} dimensions")
    print()

    rag_service = RAGService(create_embedding_service(settings), kb.store, top_k=settings.rag_top_k)
    service = PostGenerationService(
        rag_service,
        llm=None if prompts_only else create_chat_model(settings),
    )

    print("Post types:")
    for entry in service.list_post_types():
        print(f"  {entry['id']:<24} {entry['name']}: {entry['description']}")
    print()

    # Interactive generation loop
    print("=" * 60)
    print("Enter a post type (or 'quit' to exit)")
    print("=" * 60)
    print()

    while True:
        post_type = input("Post type: ").strip()
        if not post_type or post_type.lower() in ("quit", "exit", "q"):
            break
        if post_type not in POST_TYPES:
            print(f"Unknown post type: {post_type}")
            print()
            continue

        platform = input(f"Platform {PLATFORMS} [X]: ").strip() or "X"
        topic = input("Topic (optional): ").strip() or None
        print()

        try:
            request = PostGenerationRequest(
                post_type=post_type,
                platform=platform,
                context=GenerationContext(topic=topic),
            )

            results = rag_service.search(request.post_type, request.context)
            retrieval = rag_service.get_retrieval_stats(results)
            print(f"Retrieved {retrieval['total_results']} chunk(s), avg score {retrieval['avg_score']:.4f}")
            print(f"Categories: {retrieval['categories']}")
            print()

            if prompts_only:
                prepared = service.prepare_generation(request)
                print("[SYSTEM PROMPT]")
                print(prepared.system_prompt)
                print()
                print("[USER PROMPT]")
                print(prepared.user_prompt)
                print()
                continue

            response = service.generate(request)
            print(response.content)
            print()
            print(f"Pillar:     {response.metadata.pillar}")
            print(f"Hook type:  {response.metadata.hook_type}")
            print(f"Engagement: {response.metadata.estimated_engagement}")
            print(f"Characters: {response.metadata.character_count}")
            if response.metadata.tweet_count is not None:
                print(f"Tweets:     {response.metadata.tweet_count}")
            for issue in response.validation_issues:
                print(f"[WARN] {issue}")
            print()

        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            print()

    print("Goodbye!")


if __name__ == "__main__":
    main()
