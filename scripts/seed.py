from __future__ import annotations

from uptower.db.models import Base, SessionLocal, engine, Monitor, NotificationChannel, User


def main() -> None:
	Base.metadata.create_all(engine)
	with SessionLocal() as session:
		user = User(email="admin@example.com", name="Admin")
		session.add(user)
		session.flush()
		monitors = [
			Monitor(user_id=user.id, name="Example", type="http", url="https://example.com", interval_s=60, timeout_s=10),
			Monitor(user_id=user.id, name="GitHub SSH", type="tcp", hostname="github.com", port=22, interval_s=60, timeout_s=5),
			Monitor(user_id=user.id, name="Example DNS", type="dns", hostname="example.com", dns_record_type="A", interval_s=300, timeout_s=5),
		]
		channel = NotificationChannel(user_id=user.id, name="Owner email", type="email", config={})
		for m in monitors:
			m.channels.append(channel)
		session.add_all(monitors)
		session.commit()
	print("Seeded demo monitors.")


if __name__ == "__main__":
	main()
