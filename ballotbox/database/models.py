# ballotbox/database/models.py

from ballotbox import db

# Database schema for the election records. Voting state lives only here;
# nothing caches tallies or flags in memory.

class Admin(db.Model):
    __tablename__ = 'admin'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)  # clear text, compared as-is

class Position(db.Model):
    __tablename__ = 'positions'
    name = db.Column(db.String(255), primary_key=True)

    def __repr__(self):
        return f'<Position {self.name}>'

class Candidate(db.Model):
    __tablename__ = 'candidates'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    symbol = db.Column(db.String(100), nullable=False)
    age = db.Column(db.Integer, nullable=False)
    position = db.Column(db.String(255), db.ForeignKey('positions.name'), nullable=False, index=True)
    photo = db.Column(db.LargeBinary, nullable=True)
    bio = db.Column(db.Text, nullable=True)
    votes = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f'<Candidate {self.id} {self.name} for {self.position}>'

class Voter(db.Model):
    __tablename__ = 'voters'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)
    dob = db.Column(db.Date, nullable=False)
    has_voted = db.Column(db.Boolean, nullable=False, default=False)
    verified = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self):
        return f'<Voter {self.id} {self.name}>'

class VotingStatus(db.Model):
    __tablename__ = 'voting_status'
    id = db.Column(db.Integer, primary_key=True)  # always 1
    is_active = db.Column(db.Boolean, nullable=False, default=False)
