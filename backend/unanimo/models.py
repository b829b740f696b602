from unanimo import db

prompt_category = db.Table(
    'prompt_category',
    db.Column('prompt_id', db.Integer, db.ForeignKey('prompt.id'), primary_key=True),
    db.Column('category_id', db.Integer, db.ForeignKey('category.id'), primary_key=True),
)


class GameSession(db.Model):
    """Persisted session snapshot. ``version`` backs compare-and-swap saves."""
    __tablename__ = 'game_session'
    code = db.Column(db.String(8), primary_key=True)
    status = db.Column(db.String(32), nullable=False, default='waiting', index=True)
    state = db.Column(db.Text, nullable=False)
    version = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.BigInteger, nullable=True)
    updated_at = db.Column(db.BigInteger, nullable=True, index=True)

    def to_dict(self):
        return {
            'code': self.code,
            'status': self.status,
            'version': self.version,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class Category(db.Model):
    __tablename__ = 'category'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    position = db.Column(db.Integer, default=0, nullable=False)
    prompts = db.relationship('Prompt', secondary=prompt_category, back_populates='categories')

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'is_active': self.is_active}


class Prompt(db.Model):
    __tablename__ = 'prompt'
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    categories = db.relationship('Category', secondary=prompt_category, back_populates='prompts')
    valid_words = db.relationship('ValidWord', backref='prompt', lazy='dynamic', cascade='all, delete-orphan')


class ValidWord(db.Model):
    """One canonical answer group, e.g. ``AUTO|CARRO`` or ``PENA.``."""
    __tablename__ = 'valid_word'
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, index=True)
    word_group = db.Column(db.String(255), nullable=False)
