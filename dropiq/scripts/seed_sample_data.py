"""
Seed demo users, public strategies and unlocked achievements.

Usage:
  python -m dropiq.scripts.seed_sample_data
"""
from sqlalchemy import select

from dropiq.app import create_app
from dropiq.db.session import get_session
from dropiq.models import Achievement, Strategy, User, UserAchievement
from dropiq.models.base import utcnow

SAMPLE_USERS = [
    {"username": "crypto_whale", "email": "whale@example.com", "bio": "Professional airdrop farmer with 5+ years of experience", "reputation": 2500, "level": 15, "experience": 1500},
    {"username": "defi_degen", "email": "degen@example.com", "bio": "DeFi enthusiast and airdrop chaser", "reputation": 1800, "level": 12, "experience": 1200},
    {"username": "nft_collector", "email": "collector@example.com", "bio": "NFT collector and airdrop participant", "reputation": 1200, "level": 8, "experience": 800},
]

SAMPLE_STRATEGIES = [
    {
        "title": "Complete Guide to Layer 2 Airdrops",
        "description": "Step-by-step strategy for maximizing Layer 2 airdrop potential",
        "content": "This comprehensive guide covers all major Layer 2 airdrops...",
        "category": "layer2",
        "difficulty": "intermediate",
        "risk_level": "medium",
        "estimated_time": 120,
        "required_actions": ["Research Layer 2 projects", "Set up wallets", "Bridge funds", "Interact with protocols"],
        "potential_reward": 5000,
        "estimated_profit": 3000,
        "success_rate": 75,
        "tags": ["layer2", "arbitrum", "optimism", "zk"],
        "is_verified": True,
        "views": 1250,
        "likes": 89,
        "shares": 23,
    },
    {
        "title": "NFT Minting Airdrop Strategy",
        "description": "How to identify and participate in NFT project airdrops",
        "content": "NFT projects often have airdrops for early minters...",
        "category": "nft",
        "difficulty": "beginner",
        "risk_level": "high",
        "estimated_time": 60,
        "required_actions": ["Find new NFT projects", "Join communities", "Mint NFTs", "Hold tokens"],
        "potential_reward": 2000,
        "estimated_profit": 800,
        "success_rate": 60,
        "tags": ["nft", "minting", "opensea", "blur"],
        "views": 850,
        "likes": 56,
        "shares": 15,
    },
    {
        "title": "DeFi Liquidity Mining Airdrops",
        "description": "Maximize returns through DeFi liquidity mining programs",
        "content": "Liquidity mining can be a great source of airdrops...",
        "category": "defi",
        "difficulty": "advanced",
        "risk_level": "high",
        "estimated_time": 180,
        "required_actions": ["Research DeFi protocols", "Provide liquidity", "Stake LP tokens", "Compound rewards"],
        "potential_reward": 10000,
        "estimated_profit": 5000,
        "success_rate": 65,
        "tags": ["defi", "liquidity", "uniswap", "curve"],
        "is_verified": True,
        "views": 2100,
        "likes": 143,
        "shares": 41,
    },
]

# (user index, achievement key)
SAMPLE_UNLOCKS = [(0, "first_steps"), (0, "airdrop_hunter"), (1, "first_steps")]


def seed_sample_data():
    session = get_session()
    try:
        users = []
        for item in SAMPLE_USERS:
            user = session.execute(select(User).where(User.username == item["username"])).scalar_one_or_none()
            if user is None:
                user = User(avatar=f"https://api.dicebear.com/7.x/avataaars/svg?seed={item['username']}", **item)
                session.add(user)
            users.append(user)
        session.flush()

        if session.execute(select(Strategy.id)).first() is not None:
            print("Strategies already exist; skipping strategy seed.")
        else:
            for author, item in zip(users, SAMPLE_STRATEGIES):
                session.add(Strategy(author_id=author.id, is_public=True, metrics={"copies": 0}, **item))

        achievements = {a.key: a for a in session.execute(select(Achievement)).scalars()}
        unlocked = 0
        for index, key in SAMPLE_UNLOCKS:
            achievement = achievements.get(key)
            if achievement is None:
                continue
            exists = session.execute(
                select(UserAchievement.id).where(
                    UserAchievement.user_id == users[index].id,
                    UserAchievement.achievement_id == achievement.id,
                )
            ).first()
            if exists is None:
                session.add(UserAchievement(user_id=users[index].id, achievement_id=achievement.id, unlocked_at=utcnow()))
                unlocked += 1

        session.commit()
        print(f"Seeded {len(users)} users and {unlocked} achievement unlocks.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def main():
    app = create_app()
    with app.app_context():
        seed_sample_data()


if __name__ == "__main__":
    main()
