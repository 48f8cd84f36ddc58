from types import SimpleNamespace

import pytest

import armazenamento
from armazenamento import ErroOperacao, atualizar_saldo, debitar_saldo


class ConsultaFalsa:
    def __init__(self, banco, tabela):
        self.banco = banco
        self.tabela = tabela
        self.filtros = []
        self.novos = None

    def select(self, *colunas):
        return self

    def update(self, dados):
        self.novos = dados
        return self

    def insert(self, dados):
        self.banco.tabelas.setdefault(self.tabela, []).append(dict(dados))
        return self

    def eq(self, coluna, valor):
        self.filtros.append((coluna, valor))
        return self

    def order(self, *args, **kwargs):
        return self

    def _linhas(self):
        return [
            linha for linha in self.banco.tabelas.setdefault(self.tabela, [])
            if all(linha.get(coluna) == valor for coluna, valor in self.filtros)
        ]

    def execute(self):
        if self.novos is not None:
            self.banco.updates += 1
            if self.banco.interferencias:
                self.banco.interferencias.pop(0)(self.banco)
            linhas = self._linhas()
            for linha in linhas:
                linha.update(self.novos)
            return SimpleNamespace(data=[dict(linha) for linha in linhas])
        return SimpleNamespace(data=[dict(linha) for linha in self._linhas()])


class BancoFalso:
    """Cliente Supabase mínimo: só o que o controle de saldo usa"""

    def __init__(self, saldo):
        self.tabelas = {'jb_usuarios': [{'jb_id': 1, 'jb_username': 'ana', 'jb_saldo': saldo}]}
        self.interferencias = []
        self.updates = 0

    def table(self, nome):
        return ConsultaFalsa(self, nome)

    def saldo(self):
        return self.tabelas['jb_usuarios'][0]['jb_saldo']

    def outro_processo(self, delta):
        def alterar(banco):
            linha = banco.tabelas['jb_usuarios'][0]
            linha['jb_saldo'] = round(linha['jb_saldo'] + delta, 2)
        self.interferencias.append(alterar)


@pytest.fixture
def banco(monkeypatch):
    falso = BancoFalso(100.0)
    monkeypatch.setattr(armazenamento, 'supabase', falso)
    return falso


def test_credito_concorrente_nao_se_perde(banco):
    banco.outro_processo(+50)

    usuario = atualizar_saldo(1, 10)

    assert banco.saldo() == 160.0
    assert usuario['saldo'] == 160.0
    assert banco.updates == 2


def test_debito_confere_saldo_relido(banco):
    banco.outro_processo(-95)

    with pytest.raises(ErroOperacao, match='Saldo insuficiente'):
        debitar_saldo(1, 10)
    assert banco.saldo() == 5.0


def test_saldo_disputado_demais_desiste(banco):
    for _ in range(armazenamento.TENTATIVAS_SALDO):
        banco.outro_processo(+1)

    with pytest.raises(ErroOperacao):
        atualizar_saldo(1, 10)
    assert banco.saldo() == 100.0 + armazenamento.TENTATIVAS_SALDO


def test_saldo_em_memoria():
    usuario = armazenamento.inserir('usuarios', {'username': 'bia', 'saldo': 20.0})

    assert atualizar_saldo(usuario['id'], 5.5)['saldo'] == 25.5
    assert debitar_saldo(usuario['id'], 25.5)['saldo'] == 0.0
    with pytest.raises(ErroOperacao, match='Saldo insuficiente'):
        debitar_saldo(usuario['id'], 0.01)
    assert atualizar_saldo(9999, 10) is None
