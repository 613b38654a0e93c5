# producao_app/departamentos.py
import enum

from .erros import ErroValidacao


class Departamento(str, enum.Enum):
    """Setores da produção, na ordem em que o pedido passa por eles."""

    GABARITO = 'gabarito'
    IMPRESSAO = 'impressao'
    BATIDA = 'batida'
    COSTURA = 'costura'
    EMBALAGEM = 'embalagem'

    @property
    def indice(self):
        return SEQUENCIA.index(self)

    def proximo(self):
        """Setor seguinte, ou None se este for o último."""
        i = self.indice + 1
        return SEQUENCIA[i] if i < len(SEQUENCIA) else None

    def anterior(self):
        """Setor anterior, ou None se este for o primeiro."""
        i = self.indice - 1
        return SEQUENCIA[i] if i >= 0 else None

    @property
    def eh_primeiro(self):
        return self.anterior() is None

    @property
    def eh_ultimo(self):
        return self.proximo() is None

    @classmethod
    def primeiro(cls):
        return SEQUENCIA[0]

    @classmethod
    def ultimo(cls):
        return SEQUENCIA[-1]

    @classmethod
    def de(cls, valor):
        """Converte texto em Departamento, levantando ErroValidacao se não existir."""
        if isinstance(valor, cls):
            return valor
        try:
            return cls(str(valor).strip().lower())
        except ValueError:
            raise ErroValidacao(f"Departamento inválido: '{valor}'.")

    def __str__(self):
        return self.value


SEQUENCIA = tuple(Departamento)

PAPEL_ADMIN = 'admin'
PAPEIS_VALIDOS = (PAPEL_ADMIN,) + tuple(d.value for d in SEQUENCIA)

# Pedido que já passou por todos os setores (painel do admin)
CONCLUIDO = 'concluido'
